# Copyright 2024 Michael Maillet, Damien Davison, Sacha Davison
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Image reference parsing and validation.
Parses references like 'adminer', 'postgres:10' or 'ghcr.io/org/app@sha256:...'.
Nothing is pulled; a reference is only checked for well-formedness.
"""

import re
from typing import Optional
from dataclasses import dataclass

_COMPONENT = r'[a-z0-9]+(?:(?:[._]|__|-+)[a-z0-9]+)*'
_DOMAIN_COMPONENT = r'(?:[a-zA-Z0-9]|[a-zA-Z0-9][a-zA-Z0-9-]*[a-zA-Z0-9])'
_DOMAIN = rf'(?:{_DOMAIN_COMPONENT}(?:\.{_DOMAIN_COMPONENT})*|\[[0-9a-fA-F:]+\])(?::[0-9]+)?'

COMPONENT_RE = re.compile(rf'^{_COMPONENT}$')
DOMAIN_RE = re.compile(rf'^{_DOMAIN}$')
TAG_RE = re.compile(r'^[\w][\w.-]{0,127}$')
DIGEST_RE = re.compile(r'^[A-Za-z][A-Za-z0-9]*(?:[-_+.][A-Za-z][A-Za-z0-9]*)*:[0-9a-fA-F]{32,}$')

MAX_NAME_LENGTH = 255


@dataclass(frozen=True)
class ImageReference:
    """
    Parsed container image reference.

    Examples:
        - adminer -> docker.io/library/adminer:latest
        - postgres:10 -> docker.io/library/postgres:10
        - jc5x/firefly-iii:latest -> docker.io/jc5x/firefly-iii:latest
        - localhost:5000/app -> localhost:5000/app:latest
    """

    registry: str
    repository: str
    tag: Optional[str] = None
    digest: Optional[str] = None

    DEFAULT_REGISTRY = "docker.io"
    DEFAULT_TAG = "latest"

    @classmethod
    def parse(cls, reference: str) -> "ImageReference":
        """
        Parse an image reference string.

        Args:
            reference: Image reference string (e.g., 'nginx:latest', 'myuser/myimage:v1')

        Returns:
            Parsed ImageReference object.

        Raises:
            ValueError: If the reference is empty or malformed.
        """
        if not reference or not reference.strip():
            raise ValueError("Empty image reference")
        if reference != reference.strip():
            raise ValueError(f"Image reference '{reference}' has surrounding whitespace")

        remainder = reference
        digest = None
        if "@" in remainder:
            remainder, digest = remainder.rsplit("@", 1)
            if not DIGEST_RE.match(digest):
                raise ValueError(f"Invalid digest '{digest}' in image reference '{reference}'")

        # A colon after the last slash separates the tag; one before it belongs to a registry port
        tag = None
        last_colon = remainder.rfind(":")
        if last_colon > remainder.rfind("/"):
            remainder, tag = remainder[:last_colon], remainder[last_colon + 1:]
            if not TAG_RE.match(tag):
                raise ValueError(f"Invalid tag '{tag}' in image reference '{reference}'")

        parts = remainder.split("/")
        first = parts[0]
        if len(parts) > 1 and ("." in first or ":" in first or first == "localhost" or first != first.lower()):
            registry = first
            path = parts[1:]
            if not DOMAIN_RE.match(registry):
                raise ValueError(f"Invalid registry '{registry}' in image reference '{reference}'")
        else:
            registry = cls.DEFAULT_REGISTRY
            path = parts if len(parts) > 1 else ["library", first]

        for component in path:
            if not COMPONENT_RE.match(component):
                raise ValueError(f"Invalid repository component '{component}' in image reference '{reference}'")

        repository = "/".join(path)
        if len(repository) > MAX_NAME_LENGTH:
            raise ValueError(f"Repository name in '{reference}' is longer than {MAX_NAME_LENGTH} characters")

        if not tag and not digest:
            tag = cls.DEFAULT_TAG

        return cls(registry=registry, repository=repository, tag=tag, digest=digest)

    @property
    def full_name(self) -> str:
        """Get full image name with registry."""
        name = f"{self.registry}/{self.repository}"
        if self.digest:
            return f"{name}@{self.digest}"
        if self.tag:
            return f"{name}:{self.tag}"
        return name

    @property
    def short_name(self) -> str:
        """Get short image name (without registry if default)."""
        if self.registry != self.DEFAULT_REGISTRY:
            return self.full_name
        repo = self.repository
        # Official images live under library/
        if repo.startswith("library/"):
            repo = repo[len("library/"):]
        if self.digest:
            return f"{repo}@{self.digest}"
        if self.tag:
            return f"{repo}:{self.tag}"
        return repo

    def __str__(self) -> str:
        return self.short_name
