"""Postman pre-request script generation.

The script maps the port (or host) of the outgoing request to a project
name and pulls that project's current token from the broker into the
``token`` environment variable.
"""

import json
import logging

from tokenvault.exceptions import ValidationError
from tokenvault.services.project import ProjectService

logger = logging.getLogger(__name__)

_SCRIPT_TEMPLATE = """\
const projectMap = {mapping};

var currentPort = pm.request.url.port;
var currentHost = pm.request.url.getHost();

var project = projectMap[currentPort];

if (!project) {{
    project = projectMap[currentHost];
}}

if (!project) {{
    console.log("TokenVault: No project mapped for port " + currentPort + ". Skipping auto-fetch");
}} else {{
    console.log("TokenVault: Detected port " + currentPort + " -> fetching token for '" + project + "'");

    pm.sendRequest({{
        url: '{broker_url}/fetch/' + encodeURIComponent(project),
        method: 'GET'
    }}, function (err, res) {{
        if (!err && res.code === 200) {{
            var data = res.json();
            pm.environment.set("token", data.token);
            console.log("TokenVault: Token updated for " + project);
        }} else {{
            console.log("TokenVault: Token not found for " + project);
        }}
    }});
}}
"""


def parse_mapping(text: str) -> tuple[str, str]:
    """Parse a ``PORT=PROJECT`` (or ``HOST=PROJECT``) mapping.

    Args:
        text: Mapping string from the command line.

    Returns:
        Tuple of (port or host key, project name).

    Raises:
        ValidationError: If either side is empty.
    """
    key, sep, project = text.partition("=")
    key, project = key.strip(), project.strip()
    if not sep or not key or not project:
        raise ValidationError(f"Invalid mapping '{text}', expected PORT=PROJECT")
    return key, project


def mappings_from_projects(project_service: ProjectService) -> dict[str, str]:
    """Build port-to-project mappings from registered projects.

    Auto-provisioned projects (port 0) are skipped.
    """
    mapping: dict[str, str] = {}
    for project in project_service.list_projects():
        if project.port:
            mapping.setdefault(str(project.port), project.name)
    return mapping


def render_script(mapping: dict[str, str], broker_port: int) -> str:
    """Render the pre-request script.

    Args:
        mapping: Port or host to project name.
        broker_port: Port the broker listens on.

    Returns:
        JavaScript source.
    """
    mapping_js = json.dumps(mapping, indent=4, sort_keys=True)
    return _SCRIPT_TEMPLATE.format(
        mapping=mapping_js,
        broker_url=f"http://localhost:{broker_port}",
    )
