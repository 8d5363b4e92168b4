# allocgov/lifecycle/locations.py
"""
Deterministic document locations.

Path:    {applications_dir}/{id}.json
Staging: {staging_branch_prefix}/{id}
Merged:  {main_branch}

Ids are validated before they are turned into paths or branch names, so an
id can never address a file outside the applications directory.
"""

import re
from dataclasses import dataclass
from typing import Optional

from ..errors import NotFound

_SAFE_ID = re.compile(r"^[A-Za-z0-9][A-Za-z0-9_.-]*$")


@dataclass(frozen=True)
class Location:
    """Where one copy of an application document lives."""
    path: str
    ref: str


@dataclass(frozen=True)
class ApplicationLocations:
    """Maps application ids to store paths and branches."""
    applications_dir: str = "applications"
    staging_branch_prefix: str = "Application"
    main_branch: str = "main"

    def validate_id(self, application_id: str) -> str:
        if not _SAFE_ID.match(application_id or "") or ".." in application_id:
            raise NotFound(f"Invalid application id: {application_id!r}")
        return application_id

    def path(self, application_id: str) -> str:
        self.validate_id(application_id)
        directory = self.applications_dir.strip("/")
        filename = f"{application_id}.json"
        return f"{directory}/{filename}" if directory else filename

    def staging_branch(self, application_id: str) -> str:
        self.validate_id(application_id)
        return f"{self.staging_branch_prefix}/{application_id}"

    def staging(self, application_id: str) -> Location:
        return Location(self.path(application_id), self.staging_branch(application_id))

    def merged(self, application_id: str) -> Location:
        return Location(self.path(application_id), self.main_branch)

    def id_from_branch(self, branch: str) -> Optional[str]:
        """Application id for a staging branch, None for other branches."""
        prefix = f"{self.staging_branch_prefix}/"
        if not branch.startswith(prefix):
            return None
        candidate = branch[len(prefix):]
        return candidate if _SAFE_ID.match(candidate) and ".." not in candidate else None

    def id_from_path(self, path: str) -> Optional[str]:
        """Application id for a file in the applications directory, None for other files."""
        directory = self.applications_dir.strip("/")
        if directory:
            if not path.startswith(f"{directory}/"):
                return None
            path = path[len(directory) + 1:]
        if "/" in path or not path.endswith(".json") or len(path) == len(".json"):
            return None
        return path[: -len(".json")]

    def pull_request_title(self, application_id: str, client_name: str) -> str:
        return f"Application {application_id} ({client_name})"

    def pull_request_body(self, issue_number: str) -> str:
        return f"resolves #{issue_number}"

    def initial_commit_message(self, application_id: str, client_name: str) -> str:
        return f"Start application {application_id} for {client_name}: governance review"
