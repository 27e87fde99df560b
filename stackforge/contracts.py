"""
Resource Contracts Module

Responsibility:
- Define resource type contracts for the providers the stacks use
- Specify the provider, kind, required inputs and exported attributes of
  each type
- Provide provider source/version pins for the plan's required_providers

Contracts define WHAT must exist, not what the values are.
Types without a contract are still allowed; they simply export any attribute.
"""

# Provider requirements, keyed by provider name
PROVIDERS = {
    "aws": {
        "source": "hashicorp/aws",
        "version": "~> 5.0",
    },
    "github": {
        "source": "integrations/github",
        "version": "~> 6.0",
    },
}


# Resource and data source contracts
# "attributes" lists what other resources may reference via Tokens
RESOURCE_CONTRACTS = {
    # GitHub
    "github_repository": {
        "provider": "github",
        "kind": "resource",
        "required_inputs": ["name"],
        "attributes": [
            "id", "name", "full_name", "html_url", "ssh_clone_url",
            "http_clone_url", "git_clone_url", "node_id", "repo_id",
        ],
    },
    "github_repository_file": {
        "provider": "github",
        "kind": "resource",
        "required_inputs": ["repository", "file", "content"],
        "attributes": ["id", "commit_sha", "ref", "sha"],
    },

    # IAM
    "aws_iam_policy_document": {
        "provider": "aws",
        "kind": "data",
        "required_inputs": [],
        "attributes": ["id", "json", "minified_json"],
    },
    "aws_iam_role": {
        "provider": "aws",
        "kind": "resource",
        "required_inputs": ["assume_role_policy"],
        "attributes": ["id", "arn", "name", "unique_id", "create_date"],
    },

    # CodeBuild
    "aws_codebuild_source_credential": {
        "provider": "aws",
        "kind": "resource",
        "required_inputs": ["auth_type", "server_type", "token"],
        "attributes": ["id", "arn"],
    },
    "aws_codebuild_project": {
        "provider": "aws",
        "kind": "resource",
        "required_inputs": ["name", "service_role", "source", "environment", "artifacts"],
        "attributes": ["id", "arn", "name", "badge_url", "public_project_alias"],
    },
    "aws_codebuild_webhook": {
        "provider": "aws",
        "kind": "resource",
        "required_inputs": ["project_name"],
        "attributes": ["id", "payload_url", "secret", "url"],
    },
}


def get_resource_contract(resource_type: str):
    """Retrieve a resource contract by type."""
    return RESOURCE_CONTRACTS.get(resource_type)


def get_provider(provider_name: str):
    """Retrieve provider requirements by provider name."""
    return PROVIDERS.get(provider_name)


def provider_of(resource_type: str) -> str:
    """Provider name of a type: the contract's, else the type's prefix."""
    contract = get_resource_contract(resource_type)
    if contract:
        return contract["provider"]
    return resource_type.split("_", 1)[0]
