"""HTML content editor form for the content bank.

``ContentEditor`` builds a declarative ``FormDefinition`` for a render request,
turns submitted WTForms data into ``SubmittedData`` and saves it as a content
record whose primary file is the authored HTML.
"""
from collections import namedtuple

from flask import current_app
from flask_wtf import FlaskForm
from wtforms import Form, FormField, HiddenField, SelectField, StringField, SubmitField, TextAreaField
from wtforms.validators import DataRequired, Length

from .config import FORMAT_HTML, FORMAT_MARKDOWN, FORMAT_MOODLE, FORMAT_PLAIN, normalize_content_format
from .content_store import ContentStore
from .contexts import ContextResolver
from .file_storage import FileStore, clean_filename
from .utils import clean_alphanum, parse_positive_int

TEMPLATE_NONE = 'none'
HTML_SUFFIX = '.html'
FORMAT_CHOICES = [
    (FORMAT_HTML, 'HTML format'),
    (FORMAT_MOODLE, 'Auto-format'),
    (FORMAT_PLAIN, 'Plain text format'),
    (FORMAT_MARKDOWN, 'Markdown format'),
]

FieldDef = namedtuple('FieldDef', ['key', 'kind', 'label', 'validators', 'default', 'options'])


def field_def(key, kind, label='', validators=(), default=None, **options):
    return FieldDef(key, kind, label, tuple(validators), default, options)


class _BaseForm(FlaskForm):
    class Meta:
        # CSRF is enforced globally in app.before_request.
        csrf = False


def editor_form_class(rows=20, required=True):
    text_validators = [DataRequired(message='You must supply a value here.')] if required else []

    class EditorForm(Form):
        text = TextAreaField('Text', validators=text_validators, render_kw={'rows': rows})
        format = SelectField('Format', choices=FORMAT_CHOICES, coerce=int, default=FORMAT_HTML)

    return EditorForm


def _text_field(entry):
    return StringField(entry.label, validators=list(entry.validators), default=entry.default)


def _hidden_field(entry):
    return HiddenField(entry.label, default=entry.default)


def _editor_field(entry):
    form_class = editor_form_class(
        rows=entry.options.get('rows', 20),
        required=entry.options.get('required', True),
    )
    return FormField(form_class, entry.label, default=entry.default)


def _submit_field(entry):
    return SubmitField(entry.label)


FIELD_FACTORIES = {
    'hidden': _hidden_field,
    'text': _text_field,
    'editor': _editor_field,
    'submit': _submit_field,
}


class FormDefinition:
    """Ordered field schema; ``static`` entries are display-only notices."""

    def __init__(self):
        self.fields = []

    def add(self, entry):
        self.fields.append(entry)
        return entry

    def add_notice(self, message, level='warning'):
        key = f'notice_{len(self.notices)}'
        return self.add(field_def(key, 'static', default=message, level=level))

    @property
    def notices(self):
        return [entry for entry in self.fields if entry.kind == 'static']

    def keys(self):
        return [entry.key for entry in self.fields]

    def get(self, key):
        for entry in self.fields:
            if entry.key == key:
                return entry
        return None

    def defaults(self):
        return {entry.key: entry.default for entry in self.fields if entry.kind in ('hidden', 'text', 'editor')}

    def build_form(self, **kwargs):
        class DefinedForm(_BaseForm):
            pass

        for entry in self.fields:
            factory = FIELD_FACTORIES.get(entry.kind)
            if factory is not None:
                setattr(DefinedForm, entry.key, factory(entry))
        return DefinedForm(**kwargs)


class FormInput:
    def __init__(self, contextid, id=None, template=TEMPLATE_NONE):
        self.id = id
        self.contextid = contextid
        self.template = template or TEMPLATE_NONE

    @classmethod
    def from_request(cls, values, args=None):
        """Build from the customdata values (``id``, ``contextid``) and query args."""
        args = values if args is None else args
        return cls(
            contextid=values.get('contextid'),
            id=parse_positive_int(values.get('id')),
            template=clean_alphanum(args.get('template'), default=TEMPLATE_NONE),
        )


class SubmittedData:
    def __init__(self, contextid, name='', fullcontent='', contentformat=None, id=None):
        self.id = id
        self.contextid = contextid
        self.name = name
        self.fullcontent = fullcontent
        self.contentformat = contentformat

    def __repr__(self):
        return f'SubmittedData(id={self.id!r}, contextid={self.contextid!r}, name={self.name!r})'


class ContentEditor:
    def __init__(self, user, renderer, contexts=None, contents=None, files=None, rows=None):
        self.user = user
        self.renderer = renderer
        self.contexts = contexts or ContextResolver()
        self.contents = contents or ContentStore()
        self.files = files or FileStore()
        self.rows = rows

    def _editor_rows(self):
        if self.rows:
            return self.rows
        return current_app.config.get('EDITOR_ROWS', 20)

    def _default_format(self):
        return normalize_content_format(current_app.config.get('DEFAULT_CONTENT_FORMAT', FORMAT_HTML))

    def render_definition(self, form_input):
        context = self.contexts.resolve(form_input.contextid)
        definition = FormDefinition()

        fullcontent = ''
        name = ''
        if form_input.id:
            record = self.contents.get(form_input.id)
            fullcontent = record.get_configdata() or ''
            name = record.get_name()
        elif form_input.template and form_input.template != TEMPLATE_NONE:
            result = self.renderer.render(form_input.template)
            if result.is_ok:
                fullcontent = result.value
            else:
                current_app.logger.warning('Could not load template %r: %s', form_input.template, result.error)
                definition.add_notice(f'Could not load template "{form_input.template}".')

        definition.add(field_def('id', 'hidden', default=str(form_input.id or '')))
        definition.add(field_def('contextid', 'hidden', default=str(context.id)))
        definition.add(field_def(
            'name',
            'text',
            'Name',
            validators=[DataRequired(message='You must supply a value here.'), Length(max=255)],
            default=name,
        ))
        # Raw HTML: content authors are trusted, nothing is sanitized here.
        definition.add(field_def(
            'fullcontent',
            'editor',
            'Full content',
            default={'text': fullcontent, 'format': self._default_format()},
            rows=self._editor_rows(),
            required=True,
        ))
        definition.add(field_def('save', 'submit', 'Save'))
        definition.add(field_def('cancel', 'submit', 'Cancel'))
        return definition

    def build_form(self, form_input, **kwargs):
        definition = self.render_definition(form_input)
        return definition, definition.build_form(**kwargs)

    def normalize_submission(self, raw):
        if raw is None:
            return None
        fullcontent = raw.get('fullcontent')
        contentformat = None
        if isinstance(fullcontent, dict):
            contentformat = fullcontent.get('format')
            fullcontent = fullcontent.get('text')
        return SubmittedData(
            id=parse_positive_int(raw.get('id')),
            contextid=raw.get('contextid'),
            name=(raw.get('name') or '').strip(),
            fullcontent=fullcontent or '',
            contentformat=contentformat,
        )

    def get_data(self, form):
        if not form.validate_on_submit():
            return None
        return self.normalize_submission(form.data)

    def save(self, data):
        if not data.id:
            context = self.contexts.resolve(data.contextid)
            record = self.contents.create(context, self.user, name=data.name)
        else:
            record = self.contents.get(data.id)
            record.set_name(data.name)
            self.contents.update(record, self.user)

        # The authored HTML lives in the record's primary file, not in configdata.
        draft_context = self.contexts.user_context(self.user)
        stored = self.files.create_draft_file(
            draft_context,
            clean_filename(data.name) + HTML_SUFFIX,
            data.fullcontent or '',
            user=self.user,
        )
        self.files.import_file(record, stored)
        return record.id
