from typing import Any

import requests

_PROJECT_FIELDS = """
    id
    number
    title
    url
    shortDescription
    closed
    updatedAt
"""

_ISSUE_FIELDS = """
    id
    number
    title
    body
    state
    url
    updatedAt
"""

LIST_PROJECTS = f"""
query($org: String!, $after: String) {{
  organization(login: $org) {{
    projectsV2(first: 100, after: $after) {{
      nodes {{ {_PROJECT_FIELDS} }}
      pageInfo {{ hasNextPage endCursor }}
    }}
  }}
}}
"""

GET_PROJECT = f"""
query($id: ID!) {{
  node(id: $id) {{
    ... on ProjectV2 {{ {_PROJECT_FIELDS} }}
  }}
}}
"""

GET_ORGANIZATION_ID = """
query($org: String!) {
  organization(login: $org) { id }
}
"""

CREATE_PROJECT = f"""
mutation($ownerId: ID!, $title: String!) {{
  createProjectV2(input: {{ownerId: $ownerId, title: $title}}) {{
    projectV2 {{ {_PROJECT_FIELDS} }}
  }}
}}
"""

UPDATE_PROJECT = f"""
mutation($projectId: ID!, $title: String, $shortDescription: String, $closed: Boolean) {{
  updateProjectV2(input: {{
    projectId: $projectId
    title: $title
    shortDescription: $shortDescription
    closed: $closed
  }}) {{
    projectV2 {{ {_PROJECT_FIELDS} }}
  }}
}}
"""

LIST_PROJECT_ISSUES = f"""
query($id: ID!, $after: String) {{
  node(id: $id) {{
    ... on ProjectV2 {{
      items(first: 100, after: $after) {{
        nodes {{
          content {{
            ... on Issue {{ {_ISSUE_FIELDS} }}
          }}
        }}
        pageInfo {{ hasNextPage endCursor }}
      }}
    }}
  }}
}}
"""

GET_ISSUE = f"""
query($id: ID!) {{
  node(id: $id) {{
    ... on Issue {{ {_ISSUE_FIELDS} }}
  }}
}}
"""

GET_REPOSITORY_ID = """
query($org: String!, $repo: String!) {
  repository(owner: $org, name: $repo) { id }
}
"""

CREATE_ISSUE = f"""
mutation($repoId: ID!, $title: String!, $body: String) {{
  createIssue(input: {{repositoryId: $repoId, title: $title, body: $body}}) {{
    issue {{ {_ISSUE_FIELDS} }}
  }}
}}
"""

ADD_ISSUE_TO_PROJECT = """
mutation($projectId: ID!, $contentId: ID!) {
  addProjectV2ItemById(input: {projectId: $projectId, contentId: $contentId}) {
    item { id }
  }
}
"""

UPDATE_ISSUE = f"""
mutation($issueId: ID!, $title: String, $body: String) {{
  updateIssue(input: {{id: $issueId, title: $title, body: $body}}) {{
    issue {{ {_ISSUE_FIELDS} }}
  }}
}}
"""

CLOSE_ISSUE = f"""
mutation($issueId: ID!) {{
  closeIssue(input: {{issueId: $issueId}}) {{
    issue {{ {_ISSUE_FIELDS} }}
  }}
}}
"""

REOPEN_ISSUE = f"""
mutation($issueId: ID!) {{
  reopenIssue(input: {{issueId: $issueId}}) {{
    issue {{ {_ISSUE_FIELDS} }}
  }}
}}
"""


def _without_unset(variables: dict[str, Any]) -> dict[str, Any]:
    """Drop ``None`` variables; an explicit GraphQL null clears the field."""
    return {k: v for k, v in variables.items() if v is not None}


class GitHubAPIError(Exception):
    """HTTP failure or GraphQL ``errors`` payload from the GitHub API."""

    def __init__(
        self,
        message: str,
        status: int = 200,
        error_types: list[str] | None = None,
    ):
        self.message = message
        self.status = status
        self.error_types = error_types or []
        super().__init__(f"GitHub API error ({status}): {message}")

    @property
    def is_not_found(self) -> bool:
        return self.status == 404 or "NOT_FOUND" in self.error_types

    @property
    def is_transient(self) -> bool:
        """Auth, rate-limit and server errors; re-running may succeed."""
        return (
            self.status in (401, 403, 429)
            or self.status >= 500
            or "RATE_LIMITED" in self.error_types
        )


class GitHubClient:
    """GraphQL client for organization ProjectV2 boards and repository issues."""

    API_URL = "https://api.github.com/graphql"

    def __init__(self, token: str, org: str, timeout: float = 30.0):
        self.token = token
        self.org = org
        self.timeout = timeout
        self._session: requests.Session | None = None
        self._org_id: str | None = None
        self._repo_ids: dict[str, str] = {}

    @property
    def session(self) -> requests.Session:
        if self._session is None:
            self._session = requests.Session()
            self._session.headers.update(
                {
                    "Authorization": f"bearer {self.token}",
                    "Accept": "application/vnd.github+json",
                }
            )
        return self._session

    def _graphql(
        self, query: str, variables: dict[str, Any]
    ) -> dict[str, Any]:
        """
        Execute a GraphQL document and return its ``data`` member.

        Raises:
            GitHubAPIError: On a non-2xx response or an ``errors`` payload.
            requests.RequestException: On connection failure or timeout.
        """
        response = self.session.post(
            self.API_URL,
            json={"query": query, "variables": variables},
            timeout=self.timeout,
        )
        if response.status_code >= 400:
            raise GitHubAPIError(
                response.text or response.reason or "Unknown error",
                status=response.status_code,
            )

        body = response.json()
        errors = body.get("errors")
        if errors:
            raise GitHubAPIError(
                "; ".join(e.get("message", "unknown error") for e in errors),
                error_types=[e.get("type", "") for e in errors],
            )
        return body.get("data") or {}

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    def list_projects(self) -> list[dict[str, Any]]:
        projects: list[dict[str, Any]] = []
        after: str | None = None
        while True:
            data = self._graphql(
                LIST_PROJECTS, {"org": self.org, "after": after}
            )
            connection = data["organization"]["projectsV2"]
            projects.extend(n for n in connection["nodes"] if n)
            page_info = connection["pageInfo"]
            if not page_info["hasNextPage"]:
                return projects
            after = page_info["endCursor"]

    def get_project(self, project_id: str) -> dict[str, Any] | None:
        """
        Return a ProjectV2 node, or None if the id does not resolve to one.
        """
        try:
            data = self._graphql(GET_PROJECT, {"id": project_id})
        except GitHubAPIError as err:
            if err.is_not_found:
                return None
            raise
        node = data.get("node")
        return node if node and node.get("id") else None

    def get_organization_id(self) -> str:
        if self._org_id is None:
            data = self._graphql(GET_ORGANIZATION_ID, {"org": self.org})
            self._org_id = data["organization"]["id"]
        return self._org_id

    def create_project(self, title: str) -> dict[str, Any]:
        data = self._graphql(
            CREATE_PROJECT,
            {"ownerId": self.get_organization_id(), "title": title},
        )
        return data["createProjectV2"]["projectV2"]

    def update_project(
        self,
        project_id: str,
        title: str | None = None,
        short_description: str | None = None,
        closed: bool | None = None,
    ) -> dict[str, Any]:
        data = self._graphql(
            UPDATE_PROJECT,
            _without_unset(
                {
                    "projectId": project_id,
                    "title": title,
                    "shortDescription": short_description,
                    "closed": closed,
                }
            ),
        )
        return data["updateProjectV2"]["projectV2"]

    # ------------------------------------------------------------------
    # Issues
    # ------------------------------------------------------------------

    def list_project_issues(self, project_id: str) -> list[dict[str, Any]]:
        """
        Return the issues on a project board.  Draft items and pull
        requests have no Issue content and are skipped.
        """
        issues: list[dict[str, Any]] = []
        after: str | None = None
        while True:
            data = self._graphql(
                LIST_PROJECT_ISSUES, {"id": project_id, "after": after}
            )
            node = data.get("node")
            if not node or "items" not in node:
                return issues
            connection = node["items"]
            for item in connection["nodes"]:
                content = (item or {}).get("content")
                if content and content.get("id"):
                    issues.append(content)
            page_info = connection["pageInfo"]
            if not page_info["hasNextPage"]:
                return issues
            after = page_info["endCursor"]

    def get_issue(self, issue_id: str) -> dict[str, Any] | None:
        try:
            data = self._graphql(GET_ISSUE, {"id": issue_id})
        except GitHubAPIError as err:
            if err.is_not_found:
                return None
            raise
        node = data.get("node")
        return node if node and node.get("id") else None

    def get_repository_id(self, repo: str) -> str:
        if repo not in self._repo_ids:
            data = self._graphql(
                GET_REPOSITORY_ID, {"org": self.org, "repo": repo}
            )
            if not data.get("repository"):
                raise GitHubAPIError(
                    f"Repository '{self.org}/{repo}' not found",
                    error_types=["NOT_FOUND"],
                )
            self._repo_ids[repo] = data["repository"]["id"]
        return self._repo_ids[repo]

    def create_issue(
        self, repo: str, title: str, body: str | None = None
    ) -> dict[str, Any]:
        data = self._graphql(
            CREATE_ISSUE,
            {
                "repoId": self.get_repository_id(repo),
                "title": title,
                "body": body,
            },
        )
        return data["createIssue"]["issue"]

    def add_issue_to_project(self, project_id: str, issue_id: str) -> str:
        data = self._graphql(
            ADD_ISSUE_TO_PROJECT,
            {"projectId": project_id, "contentId": issue_id},
        )
        return data["addProjectV2ItemById"]["item"]["id"]

    def update_issue(
        self,
        issue_id: str,
        title: str | None = None,
        body: str | None = None,
    ) -> dict[str, Any]:
        data = self._graphql(
            UPDATE_ISSUE,
            _without_unset({"issueId": issue_id, "title": title, "body": body}),
        )
        return data["updateIssue"]["issue"]

    def close_issue(self, issue_id: str) -> dict[str, Any]:
        data = self._graphql(CLOSE_ISSUE, {"issueId": issue_id})
        return data["closeIssue"]["issue"]

    def reopen_issue(self, issue_id: str) -> dict[str, Any]:
        data = self._graphql(REOPEN_ISSUE, {"issueId": issue_id})
        return data["reopenIssue"]["issue"]
