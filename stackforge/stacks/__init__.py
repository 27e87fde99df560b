from stackforge.stacks.sample_stack import REQUIRED_ENV, build_sample_stack

__all__ = ["REQUIRED_ENV", "build_sample_stack"]
