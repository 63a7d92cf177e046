from flask import Blueprint, abort, current_app, flash, redirect, render_template, request, send_file, url_for
from flask_login import current_user, login_required

from ..content_store import ContentStore
from ..contexts import ContextResolver
from ..file_storage import FileStore
from ..forms import ContentEditor, FormInput
from ..templating import TemplateRenderer

contentbank_bp = Blueprint('contentbank', __name__)


def get_renderer():
    return TemplateRenderer(current_app.jinja_env)


def get_editor():
    return ContentEditor(current_user._get_current_object(), get_renderer())


@contentbank_bp.route('/')
@login_required
def index():
    contexts = ContextResolver()
    raw_contextid = request.args.get('contextid')
    if raw_contextid is None:
        context = contexts.system_context()
    else:
        context = contexts.resolve(raw_contextid)
    items = ContentStore().list_in_context(context)
    return render_template(
        'contentbank/index.html',
        context=context,
        items=items,
        templates=get_renderer().available(),
    )


@contentbank_bp.route('/edit', methods=['GET', 'POST'])
@login_required
def edit():
    form_input = FormInput.from_request(request.values, request.args)
    if request.method == 'POST' and 'cancel' in request.form:
        if form_input.id:
            return redirect(url_for('contentbank.view', id=form_input.id))
        return redirect(url_for('contentbank.index', contextid=form_input.contextid))

    editor = get_editor()
    definition, form = editor.build_form(form_input)
    data = editor.get_data(form)
    if data is not None:
        contentid = editor.save(data)
        flash('Content saved.', 'success')
        return redirect(url_for('contentbank.view', id=contentid))
    return render_template('contentbank/edit.html', definition=definition, form=form, form_input=form_input)


@contentbank_bp.route('/view/<int:id>')
@login_required
def view(id):
    record = ContentStore().get(id)
    stored = FileStore().get_primary_file(record)
    return render_template('contentbank/view.html', record=record, stored=stored)


@contentbank_bp.route('/file/<int:id>')
@login_required
def primary_file(id):
    record = ContentStore().get(id)
    files = FileStore()
    stored = files.get_primary_file(record)
    if stored is None:
        abort(404)
    return send_file(
        files.blob_path(stored.contenthash),
        mimetype=stored.mimetype or 'text/html',
        as_attachment=True,
        download_name=stored.filename,
        conditional=True,
        etag=True,
    )
