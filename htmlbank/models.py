from datetime import datetime, timezone
from flask_sqlalchemy import SQLAlchemy
from flask_login import UserMixin
from werkzeug.security import generate_password_hash, check_password_hash

db = SQLAlchemy()

CONTEXT_SYSTEM = 10
CONTEXT_USER = 30
CONTEXT_COURSECAT = 40
CONTEXT_COURSE = 50
CONTEXT_MODULE = 70
CONTEXT_LEVEL_LABELS = {
    CONTEXT_SYSTEM: 'System',
    CONTEXT_USER: 'User',
    CONTEXT_COURSECAT: 'Category',
    CONTEXT_COURSE: 'Course',
    CONTEXT_MODULE: 'Activity',
}

CONTENTTYPE_HTML = 'contenttype_html'

COMPONENT_USER = 'user'
COMPONENT_CONTENTBANK = 'contentbank'
FILEAREA_DRAFT = 'draft'
FILEAREA_PUBLIC = 'public'


def utc_now_naive():
    return datetime.now(timezone.utc).replace(tzinfo=None)


class User(UserMixin, db.Model):
    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(80), unique=True, nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=False)
    password_hash = db.Column(db.String(256), nullable=False)
    created_at = db.Column(db.DateTime, default=utc_now_naive)

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        return check_password_hash(self.password_hash, password)


class Context(db.Model):
    __tablename__ = 'context'

    id = db.Column(db.Integer, primary_key=True)
    contextlevel = db.Column(db.Integer, nullable=False, index=True)
    instanceid = db.Column(db.Integer, nullable=False, default=0)
    path = db.Column(db.String(255))
    depth = db.Column(db.Integer, nullable=False, default=0)

    __table_args__ = (
        db.UniqueConstraint('contextlevel', 'instanceid', name='uq_context_instance'),
    )

    @property
    def level_label(self):
        return CONTEXT_LEVEL_LABELS.get(self.contextlevel, 'Unknown')


class ContentRecord(db.Model):
    __tablename__ = 'contentbank_content'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False, default='')
    contextid = db.Column(db.Integer, db.ForeignKey('context.id'), nullable=False, index=True)
    contenttype = db.Column(db.String(100), nullable=False, default=CONTENTTYPE_HTML)
    instanceid = db.Column(db.Integer)
    configdata = db.Column(db.Text)
    usercreated = db.Column(db.Integer, db.ForeignKey('user.id'))
    usermodified = db.Column(db.Integer, db.ForeignKey('user.id'))
    timecreated = db.Column(db.DateTime, default=utc_now_naive)
    timemodified = db.Column(db.DateTime, default=utc_now_naive, onupdate=utc_now_naive)

    context = db.relationship('Context')

    def get_name(self):
        return self.name

    def set_name(self, name):
        self.name = (name or '').strip()[:255]

    def get_configdata(self):
        return self.configdata


class StoredFile(db.Model):
    __tablename__ = 'files'

    id = db.Column(db.Integer, primary_key=True)
    contextid = db.Column(db.Integer, db.ForeignKey('context.id'), nullable=False, index=True)
    component = db.Column(db.String(100), nullable=False)
    filearea = db.Column(db.String(50), nullable=False)
    itemid = db.Column(db.Integer, nullable=False, default=0)
    filepath = db.Column(db.String(255), nullable=False, default='/')
    filename = db.Column(db.String(255), nullable=False)
    contenthash = db.Column(db.String(40), nullable=False, index=True)
    filesize = db.Column(db.Integer, nullable=False, default=0)
    mimetype = db.Column(db.String(100))
    userid = db.Column(db.Integer, db.ForeignKey('user.id'))
    timecreated = db.Column(db.DateTime, default=utc_now_naive)
    timemodified = db.Column(db.DateTime, default=utc_now_naive, onupdate=utc_now_naive)

    __table_args__ = (
        db.Index('ix_files_area', 'contextid', 'component', 'filearea', 'itemid'),
    )
