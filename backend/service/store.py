"""
Config and result stores.

The scraper reads templates and slot definitions once per run and writes one
document per successful window instance. Firestore is the production
backend; the SQL backend keeps the same shapes for local runs.
"""

import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from google.cloud import firestore
from google.oauth2 import service_account

from rentals.base import SlotDefinition, Template
from service.config import Settings

logger = logging.getLogger(__name__)


class BaseStore(ABC):
    """
    Abstract store.

    Subclasses must implement:
    - load_templates(): Active templates, in a stable order
    - load_slot_definitions(): All named slot definitions
    - save_execution(): Persist one execution document
    """

    @abstractmethod
    def load_templates(self) -> List[Template]:
        pass

    @abstractmethod
    def load_slot_definitions(self) -> List[SlotDefinition]:
        pass

    @abstractmethod
    def save_execution(self, document: Dict[str, Any]) -> str:
        """Persist one execution document and return its id."""
        pass


class FirestoreStore(BaseStore):
    """Firestore-backed store; one new document per execution."""

    def __init__(self, client: firestore.Client, settings: Settings):
        self.db = client
        self.templates_collection = settings.templates_collection
        self.slots_collection = settings.slots_collection
        self.executions_collection = settings.executions_collection

    @classmethod
    def from_settings(cls, settings: Settings) -> 'FirestoreStore':
        """
        Build a client from a service account JSON string, or fall back to
        application default credentials.
        """
        credentials = None
        if settings.firebase_service_account:
            info = json.loads(settings.firebase_service_account)
            # Keys pasted into CI secrets often carry literal "\n"
            if 'private_key' in info:
                info['private_key'] = info['private_key'].replace('\\n', '\n')
            credentials = service_account.Credentials.from_service_account_info(info)
        client = firestore.Client(project=settings.firebase_project_id, credentials=credentials)
        return cls(client, settings)

    def load_templates(self) -> List[Template]:
        query = self.db.collection(self.templates_collection).where(
            filter=firestore.FieldFilter('active', '==', True)
        )
        templates = [Template.from_record(doc.id, doc.to_dict() or {}) for doc in query.stream()]
        templates.sort(key=lambda t: t.id)
        logger.info(f"Loaded {len(templates)} active template(s) from {self.templates_collection}")
        return templates

    def load_slot_definitions(self) -> List[SlotDefinition]:
        docs = self.db.collection(self.slots_collection).stream()
        definitions = [SlotDefinition.from_record(doc.id, doc.to_dict() or {}) for doc in docs]
        logger.info(f"Loaded {len(definitions)} slot definition(s) from {self.slots_collection}")
        return definitions

    def save_execution(self, document: Dict[str, Any]) -> str:
        ref = self.db.collection(self.executions_collection).document()
        ref.set(document)
        logger.debug(f"Execution saved to {self.executions_collection}/{ref.id}")
        return ref.id


def _decode_slots(value: Optional[str]) -> Any:
    """Slot fields are stored JSON-encoded; plain strings pass through."""
    if value is None:
        return None
    try:
        return json.loads(value)
    except ValueError:
        return value


class SqlStore(BaseStore):
    """SQLAlchemy-backed store with the same record shapes as Firestore."""

    def __init__(self, session_factory=None):
        if session_factory is None:
            from service.database import SessionLocal, init_db
            init_db()
            session_factory = SessionLocal
        self.session_factory = session_factory

    def load_templates(self) -> List[Template]:
        from service.database import ScrapeTemplate

        with self.session_factory() as db:
            rows = db.query(ScrapeTemplate).filter(ScrapeTemplate.active.is_(True)).order_by(ScrapeTemplate.id).all()
            templates = [
                Template.from_record(row.id, {
                    'label': row.label,
                    'url': row.url,
                    'slots': _decode_slots(row.slots),
                    'slotId': _decode_slots(row.slot_id),
                    'offsetHours': row.offset_hours,
                    'durationHours': row.duration_hours,
                    'active': row.active,
                })
                for row in rows
            ]
        logger.info(f"Loaded {len(templates)} active template(s)")
        return templates

    def load_slot_definitions(self) -> List[SlotDefinition]:
        from service.database import SlotDefinitionRow

        with self.session_factory() as db:
            rows = db.query(SlotDefinitionRow).order_by(SlotDefinitionRow.id).all()
            definitions = [
                SlotDefinition.from_record(row.id, {
                    'label': row.label,
                    'offsetHours': row.offset_hours,
                    'durationHours': row.duration_hours,
                })
                for row in rows
            ]
        logger.info(f"Loaded {len(definitions)} slot definition(s)")
        return definitions

    def save_execution(self, document: Dict[str, Any]) -> str:
        from service.database import ScrapeExecution

        with self.session_factory() as db:
            row = ScrapeExecution(
                scraped_at=document['scrapedAt'],
                template_id=document['templateId'],
                template_label=document.get('templateLabel'),
                slot_id=document.get('slotId'),
                slot_legacy=document.get('slotLegacy'),
                offset_used_hours=document.get('offsetUsedHours'),
                duration_used_hours=document.get('durationUsedHours'),
                start_used_iso=document.get('startUsedISO'),
                end_used_iso=document.get('endUsedISO'),
                records=json.dumps(document['records']),
            )
            db.add(row)
            db.commit()
            return str(row.id)


def get_store(settings: Settings) -> BaseStore:
    """
    Get the store configured by `settings.store_backend`.

    Raises:
        ValueError: If the backend is unknown
    """
    backend = settings.store_backend.lower()
    if backend == 'firestore':
        return FirestoreStore.from_settings(settings)
    if backend == 'sql':
        return SqlStore()
    raise ValueError(f"Unknown store backend: '{settings.store_backend}'. Valid backends: firestore, sql")
