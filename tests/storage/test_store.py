from tests.storage.base import StoreTestCase


class SqliteContentStoreTests(StoreTestCase):
    def test_blob_miss_returns_none(self) -> None:
        self.assertIsNone(self._store.get_blob("file:missing"))

    def test_set_blob_overwrites_same_key(self) -> None:
        self._store.set_blob("k", "first")
        self._store.set_blob("k", "second")
        self.assertEqual("second", self._store.get_blob("k"))

    def test_items_round_trip_json_values(self) -> None:
        self._store.set_item("map", {"default": 12, "default_preview": 3})
        self.assertEqual({"default": 12, "default_preview": 3}, self._store.get_item("map"))

    def test_get_item_returns_default_on_miss(self) -> None:
        self.assertEqual([], self._store.get_item("nothing", []))
        self.assertIsNone(self._store.get_item("nothing"))

    def test_update_item_reads_merges_and_writes(self) -> None:
        self._store.set_item("m", {"a": 1})
        updated = self._store.update_item("m", lambda cur: {**cur, "b": 2}, {})
        self.assertEqual({"a": 1, "b": 2}, updated)
        self.assertEqual({"a": 1, "b": 2}, self._store.get_item("m"))

    def test_update_item_uses_default_when_missing(self) -> None:
        updated = self._store.update_item("list", lambda cur: cur + ["x"], [])
        self.assertEqual(["x"], updated)

    def test_transaction_rolls_back_on_error(self) -> None:
        with self.assertRaises(RuntimeError):
            with self._store.transaction() as conn:
                conn.execute(
                    "INSERT INTO items (key, value_json, updated_at) VALUES ('tx', '1', 'now')"
                )
                raise RuntimeError("boom")
        self.assertIsNone(self._store.get_item("tx"))

    def test_remove_item_and_del_blob(self) -> None:
        self._store.set_item("i", 1)
        self._store.set_blob("b", "text")
        self._store.remove_item("i")
        self._store.del_blob("b")
        self.assertIsNone(self._store.get_item("i"))
        self.assertIsNone(self._store.get_blob("b"))
