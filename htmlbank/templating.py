"""Rendering of the bundled starter templates for new HTML content."""
import re

from flask import current_app
from jinja2 import TemplateError, TemplateNotFound

TEMPLATE_PREFIX = 'contenttype_html/'
TEMPLATE_SUFFIX = '.html'
TEMPLATE_NAME_RE = re.compile(r'^[A-Za-z0-9]+$')


class Ok:
    is_ok = True

    def __init__(self, value):
        self.value = value

    def __repr__(self):
        return f'Ok({self.value!r})'


class Err:
    is_ok = False

    def __init__(self, error):
        self.error = error

    def __repr__(self):
        return f'Err({self.error!r})'


class TemplateRenderer:
    def __init__(self, environment):
        self.environment = environment

    def template_path(self, name):
        return f'{TEMPLATE_PREFIX}{name}{TEMPLATE_SUFFIX}'

    def render(self, name, context=None):
        if not TEMPLATE_NAME_RE.match(name or ''):
            return Err(TemplateNotFound(name or ''))
        try:
            template = self.environment.get_template(self.template_path(name))
            return Ok(template.render(**(context or {})))
        except TemplateError as exc:
            return Err(exc)
        except Exception as exc:
            current_app.logger.exception('Template %r failed while rendering.', name)
            return Err(exc)

    def available(self):
        names = []
        for path in self.environment.list_templates():
            if not path.startswith(TEMPLATE_PREFIX) or not path.endswith(TEMPLATE_SUFFIX):
                continue
            name = path[len(TEMPLATE_PREFIX):-len(TEMPLATE_SUFFIX)]
            if TEMPLATE_NAME_RE.match(name):
                names.append(name)
        return sorted(names)
