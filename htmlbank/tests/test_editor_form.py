import jinja2
import pytest

from htmlbank.config import FORMAT_HTML, FORMAT_MARKDOWN, FORMAT_PLAIN, normalize_content_format
from htmlbank.content_store import ContentStore
from htmlbank.contexts import ContextResolver
from htmlbank.exceptions import ContentNotFound, InvalidContext
from htmlbank.file_storage import FileStore
from htmlbank.forms import ContentEditor, FormInput, SubmittedData
from htmlbank.models import COMPONENT_CONTENTBANK, FILEAREA_PUBLIC, ContentRecord, StoredFile, User, db
from htmlbank.templating import Err, Ok, TemplateRenderer

from .conftest import build_test_app


class RecordingRenderer:
    def __init__(self, result):
        self.result = result
        self.calls = []

    def render(self, name, context=None):
        self.calls.append(name)
        return self.result


def make_editor(app, user):
    return ContentEditor(user, TemplateRenderer(app.jinja_env))


def make_record(context, user, name, configdata=None):
    record = ContentStore().create(context, user, name=name)
    record.configdata = configdata
    db.session.commit()
    return record


def test_render_definition_for_new_content(app, admin_user, course_context):
    editor = make_editor(app, admin_user)

    definition = editor.render_definition(FormInput(contextid=course_context.id))

    assert definition.keys() == ['id', 'contextid', 'name', 'fullcontent', 'save', 'cancel']
    assert definition.notices == []
    defaults = definition.defaults()
    assert defaults['id'] == ''
    assert defaults['contextid'] == str(course_context.id)
    assert defaults['name'] == ''
    assert defaults['fullcontent'] == {'text': '', 'format': FORMAT_HTML}
    editor_entry = definition.get('fullcontent')
    assert editor_entry.kind == 'editor'
    assert editor_entry.options['rows'] == 20
    assert definition.get('name').kind == 'text'


def test_render_definition_loads_existing_record(app, admin_user, course_context):
    record = make_record(course_context, admin_user, 'Stored page', '<p>Stored body</p>')
    editor = make_editor(app, admin_user)

    definition = editor.render_definition(FormInput(contextid=course_context.id, id=record.id))

    defaults = definition.defaults()
    assert defaults['id'] == str(record.id)
    assert defaults['name'] == 'Stored page'
    assert defaults['fullcontent']['text'] == '<p>Stored body</p>'


def test_render_definition_record_without_configdata_has_empty_body(app, admin_user, course_context):
    record = make_record(course_context, admin_user, 'Empty page')
    editor = make_editor(app, admin_user)

    definition = editor.render_definition(FormInput(contextid=course_context.id, id=record.id))

    assert definition.defaults()['fullcontent']['text'] == ''


def test_render_definition_missing_record_is_fatal(app, admin_user, course_context):
    editor = make_editor(app, admin_user)

    with pytest.raises(ContentNotFound):
        editor.render_definition(FormInput(contextid=course_context.id, id=9999))


@pytest.mark.parametrize('contextid', [None, '', 'abc', 9999])
def test_render_definition_invalid_context_is_fatal(app, admin_user, contextid):
    renderer = RecordingRenderer(Ok('<p>never</p>'))
    editor = ContentEditor(admin_user, renderer)

    with pytest.raises(InvalidContext):
        editor.render_definition(FormInput(contextid=contextid, template='basic'))
    assert renderer.calls == []


def test_render_definition_seeds_body_from_template(app, admin_user, course_context):
    editor = make_editor(app, admin_user)

    definition = editor.render_definition(FormInput(contextid=course_context.id, template='basic'))

    assert definition.notices == []
    assert '<h2>Title</h2>' in definition.defaults()['fullcontent']['text']


def test_render_definition_missing_template_degrades_to_warning(app, admin_user, course_context):
    editor = make_editor(app, admin_user)

    definition = editor.render_definition(FormInput(contextid=course_context.id, template='doesnotexist'))

    assert definition.defaults()['fullcontent']['text'] == ''
    assert len(definition.notices) == 1
    notice = definition.notices[0]
    assert 'doesnotexist' in notice.default
    assert notice.options['level'] == 'warning'
    assert definition.keys()[0] == notice.key
    assert 'name' in definition.keys()


def test_render_definition_template_error_result_is_handled(app, admin_user, course_context):
    renderer = RecordingRenderer(Err(RuntimeError('broken')))
    editor = ContentEditor(admin_user, renderer)

    definition = editor.render_definition(FormInput(contextid=course_context.id, template='broken'))

    assert renderer.calls == ['broken']
    assert definition.defaults()['fullcontent']['text'] == ''
    assert len(definition.notices) == 1


def test_render_definition_template_raising_while_rendering_degrades_to_warning(app, admin_user, course_context):
    environment = jinja2.Environment(loader=jinja2.DictLoader({'contenttype_html/broken.html': '{{ 1 // 0 }}'}))
    editor = ContentEditor(admin_user, TemplateRenderer(environment))

    definition = editor.render_definition(FormInput(contextid=course_context.id, template='broken'))

    assert definition.defaults()['fullcontent']['text'] == ''
    assert len(definition.notices) == 1
    assert 'broken' in definition.notices[0].default


def test_render_definition_ignores_template_when_editing(app, admin_user, course_context):
    record = make_record(course_context, admin_user, 'Existing', '')
    renderer = RecordingRenderer(Ok('<p>template</p>'))
    editor = ContentEditor(admin_user, renderer)

    definition = editor.render_definition(FormInput(contextid=course_context.id, id=record.id, template='basic'))

    assert renderer.calls == []
    assert definition.defaults()['fullcontent']['text'] == ''


def test_render_definition_skips_none_template(app, admin_user, course_context):
    renderer = RecordingRenderer(Ok('<p>template</p>'))
    editor = ContentEditor(admin_user, renderer)

    editor.render_definition(FormInput(contextid=course_context.id, template='none'))

    assert renderer.calls == []


def test_form_input_from_request_cleans_values():
    form_input = FormInput.from_request(
        {'id': '12', 'contextid': '3'},
        {'template': 'two-columns!'},
    )
    assert form_input.id == 12
    assert form_input.contextid == '3'
    assert form_input.template == 'twocolumns'

    defaults = FormInput.from_request({'contextid': '3', 'id': 'abc'})
    assert defaults.id is None
    assert defaults.template == 'none'


def test_normalize_submission_flattens_editor_value(app, admin_user):
    editor = make_editor(app, admin_user)

    data = editor.normalize_submission({
        'id': '',
        'contextid': '3',
        'name': 'Page',
        'fullcontent': {'text': '<p>Hi</p>', 'format': FORMAT_MARKDOWN},
    })

    assert isinstance(data, SubmittedData)
    assert data.id is None
    assert data.name == 'Page'
    assert data.fullcontent == '<p>Hi</p>'
    assert data.contentformat == FORMAT_MARKDOWN


def test_normalize_submission_passes_through_failed_validation(app, admin_user):
    assert make_editor(app, admin_user).normalize_submission(None) is None


def test_get_data_reports_missing_required_fields(app, admin_user, course_context):
    editor = make_editor(app, admin_user)
    with app.test_request_context(
        '/contentbank/edit',
        method='POST',
        data={'id': '', 'contextid': str(course_context.id), 'name': '', 'fullcontent-text': ''},
    ):
        _, form = editor.build_form(FormInput(contextid=course_context.id))
        assert editor.get_data(form) is None
        assert 'name' in form.errors
        assert 'text' in form.errors['fullcontent']


def test_get_data_returns_normalized_submission(app, admin_user, course_context):
    editor = make_editor(app, admin_user)
    with app.test_request_context(
        '/contentbank/edit',
        method='POST',
        data={
            'id': '',
            'contextid': str(course_context.id),
            'name': 'Page',
            'fullcontent-text': '<p>Hi</p>',
            'fullcontent-format': str(FORMAT_HTML),
            'save': 'Save',
        },
    ):
        _, form = editor.build_form(FormInput(contextid=course_context.id))
        data = editor.get_data(form)

    assert data.name == 'Page'
    assert data.fullcontent == '<p>Hi</p>'
    assert data.contentformat == FORMAT_HTML
    assert data.contextid == str(course_context.id)


def test_save_creates_record_and_primary_file(app, admin_user, course_context):
    editor = make_editor(app, admin_user)

    contentid = editor.save(SubmittedData(contextid=course_context.id, name='My Page', fullcontent='<b>x</b>'))

    record = db.session.get(ContentRecord, contentid)
    assert record.contextid == course_context.id
    assert record.name == 'My Page'
    assert record.configdata is None
    assert record.usercreated == admin_user.id
    files = FileStore()
    stored = files.get_primary_file(record)
    assert stored.filename == 'My Page.html'
    assert stored.component == COMPONENT_CONTENTBANK
    assert stored.filearea == FILEAREA_PUBLIC
    assert stored.itemid == record.id
    assert stored.contextid == course_context.id
    assert stored.mimetype == 'text/html'
    assert files.read(stored) == b'<b>x</b>'


def test_save_updates_existing_record(app, admin_user, course_context):
    record = make_record(course_context, admin_user, 'Original', '<p>kept</p>')
    record_id = record.id
    editor = make_editor(app, admin_user)

    contentid = editor.save(SubmittedData(
        id=record_id,
        contextid=course_context.id,
        name='Renamed',
        fullcontent='<i>y</i>',
    ))

    assert contentid == record_id
    record = db.session.get(ContentRecord, record_id)
    assert record.name == 'Renamed'
    assert record.configdata == '<p>kept</p>'
    stored = FileStore().get_primary_file(record)
    assert stored.filename == 'Renamed.html'
    assert FileStore().read(stored) == b'<i>y</i>'
    assert ContentRecord.query.count() == 1


def test_save_twice_replaces_primary_file(app, admin_user, course_context):
    editor = make_editor(app, admin_user)
    contentid = editor.save(SubmittedData(contextid=course_context.id, name='Page', fullcontent='<p>one</p>'))
    first = FileStore().get_primary_file(db.session.get(ContentRecord, contentid))
    first_id = first.id

    editor.save(SubmittedData(id=contentid, contextid=course_context.id, name='Page', fullcontent='<p>two</p>'))

    record = db.session.get(ContentRecord, contentid)
    public_files = FileStore().public_files(record)
    assert len(public_files) == 1
    assert public_files[0].id != first_id
    assert FileStore().read(public_files[0]) == b'<p>two</p>'
    assert db.session.get(StoredFile, first_id) is None


def test_save_sanitizes_filename_but_keeps_name(app, admin_user, course_context):
    editor = make_editor(app, admin_user)

    contentid = editor.save(SubmittedData(contextid=course_context.id, name='My/Page', fullcontent='<p>z</p>'))

    record = db.session.get(ContentRecord, contentid)
    assert record.name == 'My/Page'
    assert FileStore().get_primary_file(record).filename == 'MyPage.html'


def test_save_keeps_html_verbatim(app, admin_user, course_context):
    body = '<script>alert("trusted")</script><p>café &amp; more</p>'
    editor = make_editor(app, admin_user)

    contentid = editor.save(SubmittedData(contextid=course_context.id, name='Raw', fullcontent=body))

    stored = FileStore().get_primary_file(db.session.get(ContentRecord, contentid))
    assert FileStore().read(stored).decode('utf-8') == body


def test_save_missing_record_is_fatal(app, admin_user, course_context):
    editor = make_editor(app, admin_user)

    with pytest.raises(ContentNotFound):
        editor.save(SubmittedData(id=4242, contextid=course_context.id, name='Ghost', fullcontent='<p></p>'))
    assert StoredFile.query.count() == 0


def test_save_invalid_context_is_fatal(app, admin_user):
    editor = make_editor(app, admin_user)

    with pytest.raises(InvalidContext):
        editor.save(SubmittedData(contextid=31337, name='Nowhere', fullcontent='<p></p>'))
    assert ContentRecord.query.count() == 0


@pytest.mark.parametrize(
    ('raw', 'expected'),
    [
        ('2', FORMAT_PLAIN),
        ('3', FORMAT_HTML),
        ('-1', FORMAT_HTML),
        ('html', FORMAT_HTML),
        (None, FORMAT_HTML),
    ],
)
def test_normalize_content_format(raw, expected):
    assert normalize_content_format(raw) == expected


def test_unknown_default_format_falls_back_to_html(tmp_path, monkeypatch):
    app = build_test_app(tmp_path, monkeypatch, {'DEFAULT_CONTENT_FORMAT': 3})
    with app.app_context():
        user = User.query.filter_by(username='admin').one()
        contextid = ContextResolver().system_context().id
        editor = make_editor(app, user)

        definition = editor.render_definition(FormInput(contextid=contextid))
        with app.test_request_context(
            '/contentbank/edit',
            method='POST',
            data={
                'id': '',
                'contextid': str(contextid),
                'name': 'Page',
                'fullcontent-text': '<p>Hi</p>',
                'save': 'Save',
            },
        ):
            _, form = editor.build_form(FormInput(contextid=contextid))
            data = editor.get_data(form)

    assert definition.defaults()['fullcontent']['format'] == FORMAT_HTML
    assert data is not None
    assert data.contentformat == FORMAT_HTML
