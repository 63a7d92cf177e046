from flask import current_app

from .exceptions import InvalidContext
from .models import CONTEXT_SYSTEM, CONTEXT_USER, Context, db


class ContextResolver:
    """Looks up contexts by id and owns the per-user context rows."""

    def resolve(self, contextid):
        try:
            parsed_id = int(contextid)
        except (TypeError, ValueError):
            raise InvalidContext(contextid) from None
        context = db.session.get(Context, parsed_id)
        if context is None:
            raise InvalidContext(contextid)
        return context

    def system_context(self):
        context = Context.query.filter_by(contextlevel=CONTEXT_SYSTEM, instanceid=0).first()
        if context is None:
            context = Context(contextlevel=CONTEXT_SYSTEM, instanceid=0, depth=1)
            db.session.add(context)
            db.session.flush()
            context.path = f'/{context.id}'
            db.session.commit()
        return context

    def user_context(self, user):
        context = Context.query.filter_by(contextlevel=CONTEXT_USER, instanceid=user.id).first()
        if context is not None:
            return context
        parent = self.system_context()
        context = Context(contextlevel=CONTEXT_USER, instanceid=user.id, depth=parent.depth + 1)
        db.session.add(context)
        db.session.flush()
        context.path = f'{parent.path}/{context.id}'
        db.session.commit()
        current_app.logger.info('Created user context %s for user %s.', context.id, user.id)
        return context

    def create_child(self, parent, contextlevel, instanceid):
        context = Context(contextlevel=contextlevel, instanceid=instanceid, depth=parent.depth + 1)
        db.session.add(context)
        db.session.flush()
        context.path = f'{parent.path}/{context.id}'
        db.session.commit()
        return context
