"""
Mail template catalog.

A template file defines three blocks: subject, plainBody and htmlBody.
The catalog wraps a single jinja2 environment built at startup and shared,
read-only, by every thread that sends mail.
"""

from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from jinja2 import Environment, FileSystemLoader, StrictUndefined, TemplateError, select_autoescape

from backend.services.mailer.errors import TemplateRenderError

TEMPLATES_DIR = Path(__file__).resolve().parent / "templates"

SUBJECT_BLOCK = "subject"
PLAIN_BODY_BLOCK = "plainBody"
HTML_BODY_BLOCK = "htmlBody"


@dataclass(frozen=True)
class RenderedMail:
    subject: str
    plain_body: str
    html_body: str


class TemplateCatalog:
    def __init__(self, directory: Path | str = TEMPLATES_DIR):
        self.directory = Path(directory)
        self._env = Environment(
            loader=FileSystemLoader(str(self.directory)),
            autoescape=select_autoescape(enabled_extensions=("html", "tmpl")),
            undefined=StrictUndefined,
            trim_blocks=True,
            lstrip_blocks=True,
        )

    def render(self, template_file: str, data: Mapping[str, Any]) -> RenderedMail:
        """
        Render the three mail blocks of template_file with data.

        Raises:
            TemplateRenderError: template missing, a block absent, or
                rendering failed (e.g. an undefined variable).
        """
        try:
            template = self._env.get_template(template_file)
        except TemplateError as e:
            raise TemplateRenderError(template_file, f"cannot load template: {e}") from e

        context = template.new_context(dict(data))
        rendered = {}
        for block_name in (SUBJECT_BLOCK, PLAIN_BODY_BLOCK, HTML_BODY_BLOCK):
            block = template.blocks.get(block_name)
            if block is None:
                raise TemplateRenderError(template_file, f"no block named {block_name!r}")
            try:
                rendered[block_name] = "".join(block(context))
            except TemplateError as e:
                raise TemplateRenderError(
                    template_file, f"rendering block {block_name!r} failed: {e}"
                ) from e

        return RenderedMail(
            # header values cannot contain line breaks
            subject=" ".join(rendered[SUBJECT_BLOCK].split()),
            plain_body=rendered[PLAIN_BODY_BLOCK],
            html_body=rendered[HTML_BODY_BLOCK],
        )
