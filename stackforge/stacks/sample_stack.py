"""
Sample stack: a GitHub repository whose Actions jobs run on AWS CodeBuild.

The workflow file committed to the repository mixes three kinds of values:
literals, a Token for the CodeBuild project name (known only once Terraform
has created the project) and GitHub expressions that only the Actions runner
evaluates.
"""

from typing import Mapping, Optional

from stackforge.models import DataSource, Provider, Resource, Stack, StackOutput
from stackforge.tokens import raw_string, yaml_encode
from stackforge.validator import validate_env

REQUIRED_ENV = ["GITHUB_TOKEN"]

WORKFLOW_PATH = ".github/workflows/hello-world.yml"


def build_sample_stack(stack_id: str = "my-stack", environ: Optional[Mapping[str, str]] = None) -> Stack:
    env = validate_env(REQUIRED_ENV, environ)
    stack = Stack(stack_id)

    # ==========================================================================
    # PROVIDERS
    # ==========================================================================

    Provider(stack, "AwsProvider", "aws")
    Provider(stack, "GithubProvider", "github")

    # ==========================================================================
    # GITHUB
    # ==========================================================================

    sample_repo = Resource(stack, "SampleRepo", "github_repository",
                           name="sample-repo",
                           auto_init=True)

    # ==========================================================================
    # IAM POLICIES
    # ==========================================================================

    codebuild_assume_role_policy = DataSource(
        stack, "CodebuildAssumeRolePolicy", "aws_iam_policy_document",
        statement=[
            {
                "effect": "Allow",
                "actions": ["sts:AssumeRole"],
                "principals": [
                    {
                        "type": "Service",
                        "identifiers": ["codebuild.amazonaws.com"],
                    }
                ],
            }
        ],
    )

    cw_logs_policy = DataSource(
        stack, "CWLogsPolicy", "aws_iam_policy_document",
        statement=[
            {
                "effect": "Allow",
                "actions": ["logs:CreateLogGroup", "logs:CreateLogStream", "logs:PutLogEvents"],
                "resources": ["*"],
            }
        ],
    )

    # ==========================================================================
    # IAM ROLES
    # ==========================================================================

    codebuild_project_role = Resource(
        stack, "CodebuildProjectRole", "aws_iam_role",
        name="codebuild-project-role",
        assume_role_policy=codebuild_assume_role_policy.json,
        inline_policy=[
            {
                "name": "cw-logs-policy",
                "policy": cw_logs_policy.json,
            }
        ],
    )

    # ==========================================================================
    # CODEBUILD
    # ==========================================================================

    Resource(stack, "GithubSourceCredential", "aws_codebuild_source_credential",
             auth_type="PERSONAL_ACCESS_TOKEN",
             server_type="GITHUB",
             token=env["GITHUB_TOKEN"])

    sample_project = Resource(
        stack, "SampleProject", "aws_codebuild_project",
        name="sample-project",
        service_role=codebuild_project_role.arn,
        source={
            "type": "GITHUB",
            "location": sample_repo.html_url,
        },
        environment={
            "type": "LINUX_CONTAINER",
            "compute_type": "BUILD_GENERAL1_SMALL",
            "image": "aws/codebuild/standard:7.0",
        },
        artifacts={
            "type": "NO_ARTIFACTS",
        },
    )

    Resource(stack, "CodebuildWebhook", "aws_codebuild_webhook",
             project_name=sample_project.name,
             filter_group=[
                 {
                     "filter": [
                         {
                             "type": "EVENT",
                             "pattern": "WORKFLOW_JOB_QUEUED",
                         }
                     ]
                 }
             ])

    # ==========================================================================
    # GHA WORKFLOWS
    # ==========================================================================

    gha_workflow = {
        "name": "Hello World",
        "on": {
            "workflow_dispatch": {},
        },
        "jobs": {
            "hello_world": {
                "runs-on": "codebuild-" + sample_project.name + "-"
                           + raw_string("${{ github.run_id }}-${{ github.run_attempt }}"),
                "steps": [
                    {
                        "run": 'echo "Hello World!"',
                    }
                ],
            }
        },
    }

    Resource(stack, "GhaWorkflowFile", "github_repository_file",
             repository=sample_repo.name,
             file=raw_string(WORKFLOW_PATH),
             content=yaml_encode(gha_workflow),
             commit_message="Add GHA workflow file")

    # ==========================================================================
    # OUTPUTS
    # ==========================================================================

    StackOutput(stack, "GhaWorkflowUrl",
                value="https://github.com/" + sample_repo.full_name + "/actions/workflows/hello-world.yml",
                description="URL to the GitHub Actions workflow")

    return stack
