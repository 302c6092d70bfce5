"""
acknowledge/reports/acknowledgements_report.py — ACKNOWLEDGEMENTS.md rendering.

Renders a ReportData with a Jinja2 template. The bundled template lives in
``acknowledge/reports/templates``; a user template file can replace it.

Template context:
    format   one of 'name-and-count', 'dep-and-names', 'name-and-deps'
    thank    list of NameAndCount / DepAndNames / NameAndDeps
    others   number of contributors below the threshold everywhere
    mention  prefix GitHub logins with '@'
    plural   plural(count, singular, plural) -> str
"""

import logging
from pathlib import Path
from typing import Optional

from jinja2 import Environment, FileSystemLoader, PackageLoader, StrictUndefined

from acknowledge.metrics.thanks import ReportData

logger = logging.getLogger(__name__)

DEFAULT_TEMPLATE = "ACKNOWLEDGEMENTS.md.j2"


def plural(count: int, singular: str, plural_form: str) -> str:
    """Return *singular* when count == 1, else *plural_form*."""
    return singular if count == 1 else plural_form


def _environment(template_path: Optional[Path]) -> tuple[Environment, str]:
    if template_path is None:
        loader = PackageLoader("acknowledge.reports", "templates")
        name = DEFAULT_TEMPLATE
    else:
        template_path = Path(template_path)
        loader = FileSystemLoader(str(template_path.parent))
        name = template_path.name

    env = Environment(
        loader=loader,
        trim_blocks=True,
        lstrip_blocks=True,
        keep_trailing_newline=True,
        undefined=StrictUndefined,
    )
    env.globals["plural"] = plural
    return env, name


def render_report(report: ReportData, template_path: Optional[Path] = None) -> str:
    """Render *report* with the bundled template or the one at *template_path*."""
    env, name = _environment(template_path)
    template = env.get_template(name)
    return template.render(
        format=report.format,
        thank=report.thank,
        others=report.others,
        mention=report.mention,
    )


def write_report(text: str, output_path: Path) -> Path:
    """Write the rendered report, creating parent directories as needed."""
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(text, encoding="utf-8")
    logger.info("Report written to %s", output_path)
    return output_path
