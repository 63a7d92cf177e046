"""Content-addressed file storage with draft and content bank file areas.

Every stored file is a row in ``files`` pointing at a blob named after the
sha1 of its bytes. Rows sharing the same bytes share one blob. Blobs are never
deleted while a request runs; ``purge_orphan_blobs`` sweeps the unreferenced
ones once they are older than a grace period.
"""
import hashlib
import mimetypes
import os
import re
import secrets
import tempfile
import time

from flask import current_app

from .models import (
    COMPONENT_CONTENTBANK,
    COMPONENT_USER,
    FILEAREA_DRAFT,
    FILEAREA_PUBLIC,
    StoredFile,
    db,
    utc_now_naive,
)

UNSAFE_FILENAME_RE = re.compile(r'[\x00-\x1f\x7f/\\:*?"<>|]')
FALLBACK_FILENAME = 'content'
MAX_FILENAME_LENGTH = 250
DRAFT_ITEMID_MAX = 999999999
BLOB_NAME_RE = re.compile(r'^[0-9a-f]{40}$')
TEMP_PREFIX = '.tmp_'


def clean_filename(value):
    """Strip path separators and characters that are unsafe in file names."""
    cleaned = UNSAFE_FILENAME_RE.sub('', value or '').strip()
    if cleaned in ('', '.', '..'):
        return FALLBACK_FILENAME
    return cleaned[:MAX_FILENAME_LENGTH]


class FileStore:
    def __init__(self, root=None):
        self._root = root

    @property
    def root(self):
        return os.path.abspath(self._root or current_app.config['FILE_STORAGE_ROOT'])

    def blob_path(self, contenthash):
        return os.path.join(self.root, contenthash[0:2], contenthash[2:4], contenthash)

    def _write_blob(self, data):
        contenthash = hashlib.sha1(data).hexdigest()
        full_path = self.blob_path(contenthash)
        if os.path.exists(full_path):
            # Refresh the mtime so the orphan sweep leaves it alone until the row is committed.
            try:
                os.utime(full_path)
                return contenthash
            except FileNotFoundError:
                pass
        directory = os.path.dirname(full_path)
        os.makedirs(directory, exist_ok=True)
        fd, temp_path = tempfile.mkstemp(dir=directory, prefix=TEMP_PREFIX)
        try:
            with os.fdopen(fd, 'wb') as handle:
                handle.write(data)
            os.replace(temp_path, full_path)
        except OSError:
            if os.path.exists(temp_path):
                os.remove(temp_path)
            raise
        return contenthash

    def purge_orphan_blobs(self, grace_seconds=None):
        """Delete blobs no file row references and stale temp files.

        Only files whose mtime is older than ``grace_seconds`` are touched, so a
        blob written or reused by an in-flight save is never removed under it.
        """
        if grace_seconds is None:
            grace_seconds = current_app.config.get('ORPHAN_BLOB_GRACE_SECONDS', 86400)
        root = self.root
        if not os.path.isdir(root):
            return 0
        referenced = {row[0] for row in db.session.query(StoredFile.contenthash).distinct()}
        cutoff = time.time() - grace_seconds
        removed = 0
        for directory, _subdirs, filenames in os.walk(root):
            for filename in filenames:
                if filename in referenced:
                    continue
                if not (BLOB_NAME_RE.match(filename) or filename.startswith(TEMP_PREFIX)):
                    continue
                full_path = os.path.join(directory, filename)
                try:
                    if os.path.getmtime(full_path) > cutoff:
                        continue
                    os.remove(full_path)
                except FileNotFoundError:
                    continue
                removed += 1
        current_app.logger.info('Purged %s orphan blob(s) from %s.', removed, root)
        return removed

    def unused_draft_itemid(self, context):
        while True:
            itemid = secrets.randbelow(DRAFT_ITEMID_MAX) + 1
            taken = StoredFile.query.filter_by(
                contextid=context.id,
                component=COMPONENT_USER,
                filearea=FILEAREA_DRAFT,
                itemid=itemid,
            ).first()
            if taken is None:
                return itemid

    def create_from_bytes(self, owner_context, filename, data, component=COMPONENT_USER,
                          filearea=FILEAREA_DRAFT, itemid=0, filepath='/', user=None, mimetype=None):
        if isinstance(data, str):
            data = data.encode('utf-8')
        contenthash = self._write_blob(data)
        stored = StoredFile(
            contextid=owner_context.id,
            component=component,
            filearea=filearea,
            itemid=itemid,
            filepath=filepath,
            filename=filename,
            contenthash=contenthash,
            filesize=len(data),
            mimetype=mimetype or mimetypes.guess_type(filename)[0] or 'application/octet-stream',
            userid=getattr(user, 'id', None),
        )
        db.session.add(stored)
        db.session.commit()
        return stored

    def create_draft_file(self, user_context, filename, data, user=None):
        return self.create_from_bytes(
            user_context,
            filename,
            data,
            itemid=self.unused_draft_itemid(user_context),
            user=user,
        )

    def public_files(self, record):
        return StoredFile.query.filter_by(
            contextid=record.contextid,
            component=COMPONENT_CONTENTBANK,
            filearea=FILEAREA_PUBLIC,
            itemid=record.id,
        ).order_by(StoredFile.id.desc()).all()

    def get_primary_file(self, record):
        files = self.public_files(record)
        return files[0] if files else None

    def import_file(self, record, stored):
        """Move ``stored`` into the record's public area, replacing what was there."""
        for previous in self.public_files(record):
            if previous.id == stored.id:
                continue
            db.session.delete(previous)
        stored.contextid = record.contextid
        stored.component = COMPONENT_CONTENTBANK
        stored.filearea = FILEAREA_PUBLIC
        stored.itemid = record.id
        stored.filepath = '/'
        stored.timemodified = utc_now_naive()
        db.session.commit()
        current_app.logger.info('Imported file %s (%s) into content %s.', stored.id, stored.filename, record.id)
        return stored

    def read(self, stored):
        with open(self.blob_path(stored.contenthash), 'rb') as handle:
            return handle.read()
