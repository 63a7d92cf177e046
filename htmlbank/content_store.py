from flask import current_app

from .exceptions import ContentNotFound
from .models import CONTENTTYPE_HTML, ContentRecord, db, utc_now_naive


class ContentStore:
    """Content bank records of the HTML content type."""

    contenttype = CONTENTTYPE_HTML

    def get(self, contentid):
        record = None
        try:
            record = db.session.get(ContentRecord, int(contentid))
        except (TypeError, ValueError):
            pass
        if record is None:
            raise ContentNotFound(contentid)
        return record

    def create(self, context, user=None, name=''):
        record = ContentRecord(
            contextid=context.id,
            contenttype=self.contenttype,
            usercreated=getattr(user, 'id', None),
            usermodified=getattr(user, 'id', None),
        )
        record.set_name(name)
        db.session.add(record)
        db.session.commit()
        current_app.logger.info('Created content %s in context %s.', record.id, context.id)
        return record

    def update(self, record, user=None):
        record.usermodified = getattr(user, 'id', record.usermodified)
        record.timemodified = utc_now_naive()
        db.session.commit()
        current_app.logger.info('Updated content %s.', record.id)
        return record

    def list_in_context(self, context):
        return ContentRecord.query.filter_by(
            contextid=context.id,
            contenttype=self.contenttype,
        ).order_by(ContentRecord.name, ContentRecord.id).all()
