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
Converters for rendering a human-readable summary of a descriptor.
"""
from typing import Optional
from jinja2 import Template
from ..MODELS.compose_descriptor import ComposeDescriptor
from ..MODELS.validation_report import ValidationReport
from ..RUNNERS.dependency_resolver import DependencyResolver
from ..errors import CircularDependencyError

SUMMARY_TEMPLATE = """\
Descriptor{% if source %} {{ source }}{% endif %} (format {{ version or 'unspecified' }})

SERVICES
{% for svc in services %}
  {{ svc.name }}
    image:      {{ svc.image or '-' }}
{% if svc.env_files %}    env files:  {{ svc.env_files | join(', ') }}
{% endif %}{% if svc.depends_on %}    depends on: {{ svc.depends_on | join(', ') }}
{% endif %}{% if svc.needed_by %}    needed by:  {{ svc.needed_by | join(', ') }}
{% endif %}{% if svc.ports %}    ports:      {{ svc.ports | join(', ') }}
{% endif %}{% for m in svc.volumes %}    mount:      {{ m.source or '<anonymous>' }} -> {{ m.target }} ({{ m.type }}{% if m.read_only %}, ro{% endif %})
{% endfor %}{% if svc.restart %}    restart:    {{ svc.restart }}
{% endif %}{% endfor %}
VOLUMES
{% for vol in volumes %}
  {{ vol.name }}{% if vol.default %} (default driver){% else %} (driver {{ vol.driver or 'default' }}{% if vol.external %}, external{% endif %}){% endif %}{% if vol.used_by %} used by {{ vol.used_by | join(', ') }}{% endif %}

{% else %}
  (none)
{% endfor %}
STARTUP ORDER
  {{ order }}
{% if report is not none %}
VALIDATION
  {{ report.errors | length }} error(s), {{ report.warnings | length }} warning(s)
{% for issue in report.issues %}  {{ issue }}
{% endfor %}{% endif %}"""


class SummaryConverter:
    """
    Renders a descriptor, its startup order and optionally its validation report as text.
    """

    def __init__(self, descriptor: ComposeDescriptor, source: Optional[str] = None):
        """
        Initializes the summary converter.

        :param descriptor: The parsed descriptor.
        :param source: Name of the file the descriptor came from.
        """
        self.descriptor = descriptor
        self.source = source
        self.resolver = DependencyResolver()
        self.template = Template(SUMMARY_TEMPLATE, trim_blocks=True)

    def convert(self, report: Optional[ValidationReport] = None) -> str:
        """
        Renders the summary.

        :param report: Validation report to append, if any.
        :return: The rendered text.
        """
        try:
            order = " -> ".join(self.resolver.resolve_order(self.descriptor)) or "(no services)"
        except CircularDependencyError as e:
            order = f"unavailable ({e})"

        dependents = self.resolver.dependents(self.descriptor)
        services = [
            {
                'name': svc.name,
                'image': svc.image,
                'env_files': [str(ref) for ref in svc.env_files],
                'depends_on': svc.depends_on,
                'needed_by': dependents[svc.name],
                'ports': [str(p) for p in svc.ports],
                'volumes': [
                    {'source': m.source, 'target': m.target, 'type': m.type.value, 'read_only': m.read_only}
                    for m in svc.volumes
                ],
                'restart': str(svc.restart) if svc.restart else None,
            }
            for svc in self.descriptor.services.values()
        ]
        volumes = [
            {
                'name': vol.name,
                'default': vol.is_default,
                'driver': vol.driver,
                'external': vol.external,
                'used_by': self.descriptor.mounts_of(vol.name),
            }
            for vol in self.descriptor.volumes.values()
        ]

        return self.template.render(
            source=self.source,
            version=self.descriptor.version,
            services=services,
            volumes=volumes,
            order=order,
            report=report,
        )
