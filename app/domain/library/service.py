"""
Clinical library service

Categories form a tree through parent_id; entries are reusable clinical
phrases; connections link entries with a typed, weighted edge. Everything
soft-deletes through is_active.
"""

import logging
from typing import Optional

from fastapi import HTTPException
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from ...models import User
from ...models_library import LibraryCategory, LibraryEntry, LibraryEntryConnection
from ...utils.sanitization import strip_control_chars
from .schemas import (
    CategoryCreate,
    CategoryResponse,
    CategoryTreeNode,
    CategoryUpdate,
    ConnectedEntry,
    ConnectionCreate,
    ConnectionResponse,
    ConnectionUpdate,
    EntryCreate,
    EntryResponse,
    EntryUpdate,
)

logger = logging.getLogger(__name__)

MAX_SEARCH_RESULTS = 100


def entry_to_response(entry: LibraryEntry) -> EntryResponse:
    response = EntryResponse.model_validate(entry)
    response.category_name = entry.category.name if entry.category else None
    return response


def connection_to_response(connection: LibraryEntryConnection) -> ConnectionResponse:
    response = ConnectionResponse.model_validate(connection)
    response.from_entry_title = connection.from_entry.title if connection.from_entry else None
    response.to_entry_title = connection.to_entry.title if connection.to_entry else None
    return response


def build_category_tree(categories: list[LibraryCategory], entry_counts: dict[int, int]) -> list[CategoryTreeNode]:
    """Nest categories under their parents; orphans (inactive parent) surface at the root"""
    nodes = {}
    for category in categories:
        node = CategoryTreeNode.model_validate(category)
        node.entry_count = entry_counts.get(category.id, 0)
        node.children = []
        nodes[category.id] = node

    roots = []
    for category in categories:
        node = nodes[category.id]
        parent = nodes.get(category.parent_id) if category.parent_id else None
        if parent is not None:
            parent.children.append(node)
        else:
            roots.append(node)
    return roots


class LibraryService:
    def __init__(self, db: Session):
        self.db = db

    # ------------------------------------------------------------------
    # Categories
    # ------------------------------------------------------------------

    def get_category_tree(self, user: User) -> list[CategoryTreeNode]:
        categories = (
            self.db.query(LibraryCategory)
            .filter(LibraryCategory.practice_id == user.practice_id, LibraryCategory.is_active.is_(True))
            .order_by(LibraryCategory.sort_order.asc(), LibraryCategory.name.asc())
            .all()
        )
        return build_category_tree(categories, self._entry_counts(user))

    def get_category(self, category_id: int, user: User) -> CategoryResponse:
        category = self._get_category(category_id, user)
        response = CategoryResponse.model_validate(category)
        response.entry_count = self._entry_counts(user).get(category.id, 0)
        return response

    def create_category(self, data: CategoryCreate, user: User) -> CategoryResponse:
        if data.parent_id is not None:
            self._get_category(data.parent_id, user)
        category = LibraryCategory(
            practice_id=user.practice_id,
            name=strip_control_chars(data.name),
            description=strip_control_chars(data.description),
            parent_id=data.parent_id,
            sort_order=data.sort_order,
        )
        self.db.add(category)
        self.db.commit()
        self.db.refresh(category)
        logger.info(f"✅ Created library category {category.id} '{category.name}'")
        return CategoryResponse.model_validate(category)

    def update_category(self, category_id: int, data: CategoryUpdate, user: User) -> CategoryResponse:
        category = self._get_category(category_id, user)
        updates = data.model_dump(exclude_unset=True)
        if updates.get("parent_id") is not None:
            self._check_parent(category, updates["parent_id"], user)
        for key, value in updates.items():
            if key in ("name", "sort_order") and value is None:
                continue
            setattr(category, key, strip_control_chars(value) if isinstance(value, str) else value)
        self.db.commit()
        self.db.refresh(category)
        return self.get_category(category.id, user)

    def delete_category(self, category_id: int, user: User) -> dict:
        category = self._get_category(category_id, user)
        category.is_active = False
        self.db.commit()
        logger.info(f"🗑️ Deactivated library category {category.id}")
        return {"message": "Category deleted"}

    def _check_parent(self, category: LibraryCategory, parent_id: int, user: User) -> None:
        """Reject a parent that is the category itself or one of its descendants"""
        parent = self._get_category(parent_id, user)
        seen = set()
        node: Optional[LibraryCategory] = parent
        while node is not None and node.id not in seen:
            if node.id == category.id:
                raise HTTPException(status_code=400, detail="A category cannot be nested under itself")
            seen.add(node.id)
            node = (
                self.db.query(LibraryCategory).filter(LibraryCategory.id == node.parent_id).first()
                if node.parent_id
                else None
            )

    def _entry_counts(self, user: User) -> dict[int, int]:
        rows = (
            self.db.query(LibraryEntry.category_id, func.count(LibraryEntry.id))
            .filter(LibraryEntry.practice_id == user.practice_id, LibraryEntry.is_active.is_(True))
            .group_by(LibraryEntry.category_id)
            .all()
        )
        return dict(rows)

    # ------------------------------------------------------------------
    # Entries
    # ------------------------------------------------------------------

    def list_entries(self, user: User, category_id: Optional[int] = None) -> list[EntryResponse]:
        query = self.db.query(LibraryEntry).filter(
            LibraryEntry.practice_id == user.practice_id, LibraryEntry.is_active.is_(True)
        )
        if category_id is not None:
            query = query.filter(LibraryEntry.category_id == category_id)
        entries = query.order_by(LibraryEntry.sort_order.asc(), LibraryEntry.title.asc()).all()
        return [entry_to_response(e) for e in entries]

    def search_entries(self, user: User, q: str, category_id: Optional[int] = None) -> list[EntryResponse]:
        """Title, content and tag matches; results with more usage come first"""
        term = (q or "").strip().lower()
        if not term:
            return []
        query = self.db.query(LibraryEntry).filter(
            LibraryEntry.practice_id == user.practice_id,
            LibraryEntry.is_active.is_(True),
        )
        if category_id is not None:
            query = query.filter(LibraryEntry.category_id == category_id)

        # tags live in a JSON column, so matching happens here rather than in SQL
        matches = [
            entry
            for entry in query.order_by(LibraryEntry.usage_count.desc(), LibraryEntry.title.asc()).all()
            if term in entry.title.lower()
            or term in (entry.content or "").lower()
            or any(term in str(tag).lower() for tag in entry.tags or [])
        ]
        return [entry_to_response(e) for e in matches[:MAX_SEARCH_RESULTS]]

    def get_entry(self, entry_id: int, user: User) -> EntryResponse:
        return entry_to_response(self._get_entry(entry_id, user))

    def create_entry(self, data: EntryCreate, user: User) -> EntryResponse:
        self._get_category(data.category_id, user)
        entry = LibraryEntry(
            practice_id=user.practice_id,
            category_id=data.category_id,
            title=strip_control_chars(data.title),
            content=strip_control_chars(data.content),
            tags=[t.strip() for t in data.tags if t.strip()],
            sort_order=data.sort_order,
            created_by_id=user.id,
        )
        self.db.add(entry)
        self.db.commit()
        self.db.refresh(entry)
        return entry_to_response(entry)

    def update_entry(self, entry_id: int, data: EntryUpdate, user: User) -> EntryResponse:
        entry = self._get_entry(entry_id, user)
        updates = data.model_dump(exclude_unset=True, exclude_none=True)
        if "category_id" in updates:
            self._get_category(updates["category_id"], user)
        for key, value in updates.items():
            setattr(entry, key, strip_control_chars(value) if isinstance(value, str) else value)
        self.db.commit()
        self.db.refresh(entry)
        return entry_to_response(entry)

    def delete_entry(self, entry_id: int, user: User) -> dict:
        entry = self._get_entry(entry_id, user)
        entry.is_active = False
        self.db.commit()
        return {"message": "Entry deleted"}

    def increment_usage(self, entry_id: int, user: User) -> EntryResponse:
        entry = self._get_entry(entry_id, user)
        entry.usage_count = (entry.usage_count or 0) + 1
        self.db.commit()
        self.db.refresh(entry)
        return entry_to_response(entry)

    # ------------------------------------------------------------------
    # Connections
    # ------------------------------------------------------------------

    def list_connections(self, user: User, entry_id: Optional[int] = None) -> list[ConnectionResponse]:
        query = self.db.query(LibraryEntryConnection).filter(
            LibraryEntryConnection.practice_id == user.practice_id,
            LibraryEntryConnection.is_active.is_(True),
        )
        if entry_id is not None:
            query = query.filter(
                or_(LibraryEntryConnection.from_entry_id == entry_id, LibraryEntryConnection.to_entry_id == entry_id)
            )
        connections = query.order_by(LibraryEntryConnection.strength.desc(), LibraryEntryConnection.id.asc()).all()
        return [connection_to_response(c) for c in connections]

    def get_connected_entries(self, entry_id: int, user: User) -> list[ConnectedEntry]:
        """Entries linked to this one in either direction, strongest first"""
        entry = self._get_entry(entry_id, user)
        connections = (
            self.db.query(LibraryEntryConnection)
            .filter(
                LibraryEntryConnection.practice_id == user.practice_id,
                LibraryEntryConnection.is_active.is_(True),
                or_(
                    LibraryEntryConnection.from_entry_id == entry.id,
                    LibraryEntryConnection.to_entry_id == entry.id,
                ),
            )
            .order_by(LibraryEntryConnection.strength.desc(), LibraryEntryConnection.id.asc())
            .all()
        )
        connected = []
        for connection in connections:
            outgoing = connection.from_entry_id == entry.id
            other = connection.to_entry if outgoing else connection.from_entry
            if other is None or not other.is_active:
                continue
            connected.append(
                ConnectedEntry(
                    connection_id=connection.id,
                    connection_type=connection.connection_type,
                    strength=connection.strength,
                    direction="outgoing" if outgoing else "incoming",
                    entry=entry_to_response(other),
                )
            )
        return connected

    def create_connection(self, data: ConnectionCreate, user: User) -> ConnectionResponse:
        if data.from_entry_id == data.to_entry_id:
            raise HTTPException(status_code=400, detail="An entry cannot be connected to itself")
        self._get_entry(data.from_entry_id, user)
        self._get_entry(data.to_entry_id, user)

        duplicate = (
            self.db.query(LibraryEntryConnection.id)
            .filter(
                LibraryEntryConnection.practice_id == user.practice_id,
                LibraryEntryConnection.from_entry_id == data.from_entry_id,
                LibraryEntryConnection.to_entry_id == data.to_entry_id,
                LibraryEntryConnection.connection_type == data.connection_type,
                LibraryEntryConnection.is_active.is_(True),
            )
            .first()
        )
        if duplicate:
            raise HTTPException(status_code=409, detail="These entries are already connected")

        connection = LibraryEntryConnection(practice_id=user.practice_id, **data.model_dump())
        self.db.add(connection)
        self.db.commit()
        self.db.refresh(connection)
        logger.info(
            f"🔗 Connected library entries {connection.from_entry_id} -> {connection.to_entry_id} ({connection.connection_type})"
        )
        return connection_to_response(connection)

    def update_connection(self, connection_id: int, data: ConnectionUpdate, user: User) -> ConnectionResponse:
        connection = self._get_connection(connection_id, user)
        for key, value in data.model_dump(exclude_unset=True, exclude_none=True).items():
            setattr(connection, key, value)
        self.db.commit()
        self.db.refresh(connection)
        return connection_to_response(connection)

    def delete_connection(self, connection_id: int, user: User) -> dict:
        connection = self._get_connection(connection_id, user)
        connection.is_active = False
        self.db.commit()
        return {"message": "Connection deleted"}

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _get_category(self, category_id: int, user: User) -> LibraryCategory:
        category = (
            self.db.query(LibraryCategory)
            .filter(
                LibraryCategory.id == category_id,
                LibraryCategory.practice_id == user.practice_id,
                LibraryCategory.is_active.is_(True),
            )
            .first()
        )
        if not category:
            raise HTTPException(status_code=404, detail="Category not found")
        return category

    def _get_entry(self, entry_id: int, user: User) -> LibraryEntry:
        entry = (
            self.db.query(LibraryEntry)
            .filter(
                LibraryEntry.id == entry_id,
                LibraryEntry.practice_id == user.practice_id,
                LibraryEntry.is_active.is_(True),
            )
            .first()
        )
        if not entry:
            raise HTTPException(status_code=404, detail="Library entry not found")
        return entry

    def _get_connection(self, connection_id: int, user: User) -> LibraryEntryConnection:
        connection = (
            self.db.query(LibraryEntryConnection)
            .filter(
                LibraryEntryConnection.id == connection_id,
                LibraryEntryConnection.practice_id == user.practice_id,
                LibraryEntryConnection.is_active.is_(True),
            )
            .first()
        )
        if not connection:
            raise HTTPException(status_code=404, detail="Connection not found")
        return connection
