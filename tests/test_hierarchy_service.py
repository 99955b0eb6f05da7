"""Unit tests for HierarchyService, the folder tree engine.

Tests the service layer directly against SQLite and the in-memory object
store, bypassing the HTTP stack. Covers root provisioning idempotence,
sibling uniqueness, key derivation, recursive fetch and delete, and
ancestor chains including corrupt ones.
"""

from unittest.mock import patch

import pydantic
import pytest

from foldervault.core.config import Settings, settings
from foldervault.exceptions import (
    BrokenHierarchyError,
    DuplicateNameError,
    FileRecordNotFoundError,
    FolderNotFoundError,
    ForbiddenError,
    StorageUnavailableError,
    ValidationError,
)
from foldervault.models import Folder, StoredFile
from foldervault.services.hierarchy_service import MAX_KEY_BYTES, HierarchyService, sanitize_root_name
from foldervault.services.identity_service import ROOT_FOLDER_ATTRIBUTE
from foldervault.storage import PLACEHOLDER_CONTENT_TYPE

from conftest import USER_ID, OTHER_USER_ID


def _make_chain(hierarchy, root, depth):
    """Create nested folders L1/L2/.../L{depth} under root; returns them top-down."""
    chain = []
    parent = root
    for level in range(1, depth + 1):
        parent = hierarchy.create_subfolder(parent, f"L{level}", root, USER_ID)
        chain.append(parent)
    return chain


def _upload(transfer, root, folder, name, data=b"0123456789"):
    return transfer.upload_file_to_folder(root, folder, name, "text/plain", data, USER_ID)


class TestCreateRootFolder:

    def test_creates_root_with_placeholder(self, hierarchy, identity, store):
        root = hierarchy.create_root_folder(USER_ID)
        assert root.is_root is True
        assert root.parent_folder_id is None
        assert root.owner_id == USER_ID
        assert root.folder_name == "Test_User"
        assert root.display_name == "Test User"
        assert root.s3_key == "Test_User/"
        assert store.objects["Test_User/"] == (b"", PLACEHOLDER_CONTENT_TYPE)
        assert identity.get_attribute(USER_ID, ROOT_FOLDER_ATTRIBUTE) == root.id

    def test_idempotent(self, hierarchy, db, store):
        ids = {hierarchy.create_root_folder(USER_ID).id for _ in range(3)}
        assert len(ids) == 1
        roots = db.query(Folder).filter(Folder.owner_id == USER_ID, Folder.is_root.is_(True)).all()
        assert len(roots) == 1
        assert len(store.objects) == 1

    def test_stale_cached_id_is_not_trusted(self, hierarchy, identity, db):
        identity.set_attribute(USER_ID, ROOT_FOLDER_ATTRIBUTE, "fld-does-not-exist")
        db.commit()
        root = hierarchy.create_root_folder(USER_ID)
        assert root.id != "fld-does-not-exist"
        assert identity.get_attribute(USER_ID, ROOT_FOLDER_ATTRIBUTE) == root.id

    def test_missing_attribute_repaired_from_index(self, hierarchy, identity, db):
        root = hierarchy.create_root_folder(USER_ID)
        identity.set_attribute(USER_ID, ROOT_FOLDER_ATTRIBUTE, "fld-bogus")
        db.commit()
        assert hierarchy.create_root_folder(USER_ID).id == root.id
        assert identity.get_attribute(USER_ID, ROOT_FOLDER_ATTRIBUTE) == root.id

    def test_name_collision_suffixed_with_user_id(self, hierarchy, identity, db):
        identity.ensure_profile("twin", "Test", "User")
        db.commit()
        first = hierarchy.create_root_folder(USER_ID)
        second = hierarchy.create_root_folder("twin")
        assert first.folder_name == "Test_User"
        assert second.folder_name == "Test_User_twin"
        assert second.s3_key == "Test_User_twin/"

    def test_profile_without_names_falls_back_to_user_id(self, hierarchy):
        root = hierarchy.create_root_folder("nameless")
        assert root.folder_name == "user_nameless"
        assert root.display_name is None

    def test_storage_failure_creates_nothing(self, hierarchy, store, db):
        store.fail_puts = True
        with pytest.raises(StorageUnavailableError):
            hierarchy.create_root_folder(USER_ID)
        assert db.query(Folder).count() == 0

    def test_sanitize_root_name(self):
        assert sanitize_root_name("  Ada Lovelace ") == "Ada_Lovelace"
        assert sanitize_root_name("José/../etc") == "Jos_.._etc"
        assert sanitize_root_name("...") == ""


class TestCreateSubfolder:

    def test_key_derived_from_parent(self, hierarchy, root, store):
        docs = hierarchy.create_subfolder(root, "Docs", root, USER_ID)
        sub = hierarchy.create_subfolder(docs, "Sub", root, USER_ID)
        assert docs.s3_key == "Test_User/Docs/"
        assert sub.s3_key == "Test_User/Docs/Sub/"
        assert sub.parent_folder_id == docs.id
        assert sub.owner_id == USER_ID
        assert sub.is_root is False
        assert "Test_User/Docs/Sub/" in store.objects

    def test_duplicate_name_rejected(self, hierarchy, root, db):
        hierarchy.create_subfolder(root, "Docs", root, USER_ID)
        with pytest.raises(DuplicateNameError):
            hierarchy.create_subfolder(root, "Docs", root, USER_ID)
        assert db.query(Folder).filter(Folder.parent_folder_id == root.id).count() == 1

    def test_same_name_allowed_under_different_parents(self, hierarchy, root):
        a = hierarchy.create_subfolder(root, "A", root, USER_ID)
        b = hierarchy.create_subfolder(root, "B", root, USER_ID)
        hierarchy.create_subfolder(a, "Shared", root, USER_ID)
        hierarchy.create_subfolder(b, "Shared", root, USER_ID)

    @pytest.mark.parametrize("name", ["", "   ", "a/b", "..", "x" * 256])
    def test_invalid_name_has_no_side_effects(self, hierarchy, root, store, name):
        before = dict(store.objects)
        with pytest.raises(ValidationError):
            hierarchy.create_subfolder(root, name, root, USER_ID)
        assert store.objects == before

    def test_storage_failure_propagates_without_row(self, hierarchy, root, store, db):
        store.fail_puts = True
        with pytest.raises(StorageUnavailableError):
            hierarchy.create_subfolder(root, "Docs", root, USER_ID)
        assert db.query(Folder).filter(Folder.parent_folder_id == root.id).count() == 0

    def test_unique_constraint_decides_race(self, hierarchy, root, db, store):
        """A create that passes the pre-check still loses to the unique index."""
        winner = hierarchy.create_subfolder(root, "Docs", root, USER_ID)
        with patch.object(
            hierarchy.folder_repo, "get_child_by_name", side_effect=[None, winner]
        ):
            with pytest.raises(DuplicateNameError):
                hierarchy.create_subfolder(root, "Docs", root, USER_ID)
        assert db.query(Folder).filter(Folder.parent_folder_id == root.id).count() == 1
        # The placeholder belongs to the winner and must survive.
        assert "Test_User/Docs/" in store.objects

    def test_foreign_parent_forbidden(self, hierarchy, root, identity, db):
        other_root = hierarchy.create_root_folder(OTHER_USER_ID)
        with pytest.raises(ForbiddenError):
            hierarchy.create_subfolder(other_root, "Intrude", root, USER_ID)


class TestGetFolder:

    def test_missing_folder_raises(self, hierarchy):
        with pytest.raises(FolderNotFoundError):
            hierarchy.get_folder("fld-missing")

    def test_detail_lists_direct_children_only(self, hierarchy, transfer, root):
        docs = hierarchy.create_subfolder(root, "Docs", root, USER_ID)
        hierarchy.create_subfolder(docs, "Deep", root, USER_ID)
        _upload(transfer, root, root, "top.txt")

        detail = hierarchy.get_folder_detail(root.id)
        assert [f.folder_name for f in detail.subfolders] == ["Docs"]
        assert [f.file_name for f in detail.files] == ["top.txt"]


class TestGetFolderRecursively:

    def test_builds_complete_tree(self, hierarchy, transfer, root):
        docs = hierarchy.create_subfolder(root, "Docs", root, USER_ID)
        sub = hierarchy.create_subfolder(docs, "Sub", root, USER_ID)
        hierarchy.create_subfolder(root, "Empty", root, USER_ID)
        _upload(transfer, root, docs, "a.txt")
        _upload(transfer, root, sub, "b.txt")

        tree = hierarchy.get_folder_recursively(root.id)
        by_name = {f.folder_name: f for f in tree.subfolders}
        assert set(by_name) == {"Docs", "Empty"}
        assert [f.file_name for f in by_name["Docs"].files] == ["a.txt"]
        assert by_name["Docs"].subfolders[0].folder_name == "Sub"
        assert by_name["Docs"].subfolders[0].files[0].file_name == "b.txt"
        assert by_name["Empty"].subfolders == []

    def test_deep_tree(self, hierarchy, root):
        _make_chain(hierarchy, root, 60)
        node = hierarchy.get_folder_recursively(root.id)
        depth = 0
        while node.subfolders:
            node = node.subfolders[0]
            depth += 1
        assert depth == 60


class TestDeleteFolderRecursively:

    def test_removes_subtree_from_both_backends(self, hierarchy, transfer, root, store, db):
        docs = hierarchy.create_subfolder(root, "Docs", root, USER_ID)
        sub = hierarchy.create_subfolder(docs, "Sub", root, USER_ID)
        keep = hierarchy.create_subfolder(root, "Keep", root, USER_ID)
        a = _upload(transfer, root, docs, "a.txt")
        b = _upload(transfer, root, sub, "b.txt")
        ids = [docs.id, sub.id]
        file_ids = [a.id, b.id]

        report = hierarchy.delete_folder_recursively(docs.id)

        assert report.deleted_folders == 2
        assert report.deleted_files == 2
        assert report.failed_keys == []
        for folder_id in ids:
            with pytest.raises(FolderNotFoundError):
                hierarchy.get_folder(folder_id)
        for file_id in file_ids:
            with pytest.raises(FileRecordNotFoundError):
                transfer.get_file(file_id)
        assert not [k for k in store.objects if k.startswith("Test_User/Docs/")]
        assert hierarchy.get_folder(keep.id).folder_name == "Keep"
        assert "Test_User/Keep/" in store.objects

    def test_empty_folder(self, hierarchy, root):
        empty = hierarchy.create_subfolder(root, "Empty", root, USER_ID)
        report = hierarchy.delete_folder_recursively(empty.id)
        assert report.deleted_folders == 1
        with pytest.raises(FolderNotFoundError):
            hierarchy.get_folder(empty.id)

    def test_deep_chain(self, hierarchy, root, db):
        chain = _make_chain(hierarchy, root, 30)
        report = hierarchy.delete_folder_recursively(chain[0].id)
        assert report.deleted_folders == 30
        assert db.query(Folder).count() == 1

    def test_storage_failures_are_skipped_and_reported(self, hierarchy, transfer, root, store, db):
        docs = hierarchy.create_subfolder(root, "Docs", root, USER_ID)
        _upload(transfer, root, docs, "a.txt")
        _upload(transfer, root, docs, "b.txt")
        store.fail_deletes = {"Test_User/Docs/a.txt"}

        report = hierarchy.delete_folder_recursively(docs.id)

        assert report.failed_keys == ["Test_User/Docs/a.txt"]
        assert report.deleted_files == 2
        assert db.query(StoredFile).count() == 0
        assert "Test_User/Docs/a.txt" in store.objects
        assert "Test_User/Docs/b.txt" not in store.objects

    def test_missing_folder_raises(self, hierarchy):
        with pytest.raises(FolderNotFoundError):
            hierarchy.delete_folder_recursively("fld-missing")


class TestGetAncestors:

    def test_chain_is_root_first_and_depth_plus_one(self, hierarchy, root):
        chain = _make_chain(hierarchy, root, 4)
        crumbs = hierarchy.get_ancestors(chain[-1].id, USER_ID)
        assert len(crumbs) == 5
        assert crumbs[0].id == root.id
        assert crumbs[0].is_root is True
        assert crumbs[0].name == "Test User"
        assert crumbs[-1].id == chain[-1].id
        assert [c.name for c in crumbs[1:]] == ["L1", "L2", "L3", "L4"]

    def test_root_itself(self, hierarchy, root):
        crumbs = hierarchy.get_ancestors(root.id, USER_ID)
        assert [c.id for c in crumbs] == [root.id]

    def test_no_folder_returns_root(self, hierarchy, root):
        crumbs = hierarchy.get_ancestors(None, USER_ID)
        assert len(crumbs) == 1
        assert crumbs[0].id == root.id
        assert crumbs[0].name == "Test User"

    def test_root_label_falls_back_to_profile(self, hierarchy, root, db):
        root.display_name = None
        db.commit()
        assert hierarchy.get_ancestors(None, USER_ID)[0].name == "Test User"

    def test_other_users_folder_forbidden(self, hierarchy, root):
        other_root = hierarchy.create_root_folder(OTHER_USER_ID)
        with pytest.raises(ForbiddenError):
            hierarchy.get_ancestors(other_root.id, USER_ID)

    def test_orphan_non_root_is_broken(self, hierarchy, root, db):
        db.add(Folder(
            id="fld-orphan", folder_name="Orphan", owner_id=USER_ID,
            s3_key="Orphan/", is_root=False, parent_folder_id=None,
        ))
        db.commit()
        with pytest.raises(BrokenHierarchyError):
            hierarchy.get_ancestors("fld-orphan", USER_ID)

    def test_cycle_is_broken(self, hierarchy, root, db):
        db.add(Folder(id="fld-a", folder_name="A", owner_id=USER_ID, s3_key="A/", is_root=False))
        db.flush()
        db.add(Folder(
            id="fld-b", folder_name="B", owner_id=USER_ID, s3_key="A/B/",
            is_root=False, parent_folder_id="fld-a",
        ))
        db.flush()
        db.get(Folder, "fld-a").parent_folder_id = "fld-b"
        db.commit()
        with pytest.raises(BrokenHierarchyError):
            hierarchy.get_ancestors("fld-b", USER_ID)

    def test_chain_longer_than_bound_is_broken(self, hierarchy, db, store, identity, root):
        # Rows written under a larger bound than the one now configured.
        chain = _make_chain(hierarchy, root, 5)
        bounded = HierarchyService(db, store, identity, max_depth=3)
        with pytest.raises(BrokenHierarchyError):
            bounded.get_ancestors(chain[-1].id, USER_ID)
        assert len(bounded.get_ancestors(chain[2].id, USER_ID)) == 4

    def test_folder_at_depth_bound_resolves(self, db, store, identity, root):
        bounded = HierarchyService(db, store, identity, max_depth=3)
        chain = _make_chain(bounded, root, 3)
        crumbs = bounded.get_ancestors(chain[-1].id, USER_ID)
        assert [c.id for c in crumbs] == [root.id] + [f.id for f in chain]

    def test_default_depth_bound_resolves(self, hierarchy, root):
        chain = _make_chain(hierarchy, root, settings.max_tree_depth)
        assert len(hierarchy.get_ancestors(chain[-1].id, USER_ID)) == settings.max_tree_depth + 1


class TestDepthAndKeyLimits:

    def test_nesting_beyond_bound_rejected_before_write(self, db, store, identity, root):
        bounded = HierarchyService(db, store, identity, max_depth=3)
        chain = _make_chain(bounded, root, 3)
        objects_before = dict(store.objects)
        with pytest.raises(ValidationError):
            bounded.create_subfolder(chain[-1], "L4", root, USER_ID)
        assert store.objects == objects_before
        assert bounded.folder_repo.get_child_by_name(chain[-1].id, "L4") is None

    def test_folder_depth(self, hierarchy, root):
        chain = _make_chain(hierarchy, root, 4)
        assert hierarchy.folder_depth(root) == 0
        assert hierarchy.folder_depth(chain[-1]) == 4

    def test_key_at_limit_accepted(self, hierarchy, root):
        parent = root
        for name in ("a" * 255, "b" * 255, "c" * 255):
            parent = hierarchy.create_subfolder(parent, name, root, USER_ID)
        # "Test_User/" is 10 bytes, each level adds 256.
        remaining = MAX_KEY_BYTES - len(parent.s3_key) - 1
        folder = hierarchy.create_subfolder(parent, "d" * remaining, root, USER_ID)
        assert len(folder.s3_key.encode("utf-8")) == MAX_KEY_BYTES

    def test_key_over_limit_rejected_before_write(self, hierarchy, root, store):
        parent = root
        for name in ("a" * 255, "b" * 255, "c" * 255):
            parent = hierarchy.create_subfolder(parent, name, root, USER_ID)
        objects_before = dict(store.objects)
        with pytest.raises(ValidationError):
            hierarchy.create_subfolder(parent, "d" * 255, root, USER_ID)
        assert store.objects == objects_before

    def test_key_limit_counts_bytes(self, hierarchy, root):
        parent = root
        for name in ("a" * 255, "b" * 255, "c" * 255):
            parent = hierarchy.create_subfolder(parent, name, root, USER_ID)
        # 200 characters but 400 bytes.
        with pytest.raises(ValidationError):
            hierarchy.create_subfolder(parent, "é" * 200, root, USER_ID)

    def test_depth_setting_is_capped(self):
        with pytest.raises(pydantic.ValidationError):
            Settings(max_tree_depth=500)


class TestIsWithin:

    def test_descendant_and_sibling(self, hierarchy, root):
        docs = hierarchy.create_subfolder(root, "Docs", root, USER_ID)
        deep = hierarchy.create_subfolder(docs, "Deep", root, USER_ID)
        other = hierarchy.create_subfolder(root, "Other", root, USER_ID)
        assert hierarchy.is_within(deep.id, docs.id) is True
        assert hierarchy.is_within(docs.id, docs.id) is True
        assert hierarchy.is_within(other.id, docs.id) is False
        assert hierarchy.is_within(deep.id, root.id) is True
