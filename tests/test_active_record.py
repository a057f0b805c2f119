import sqlite3
from datetime import datetime
from decimal import Decimal
from unittest import TestCase, mock

from nanocore.core_services.Database import Database
from nanocore.core_services.Sqlite3Database import Sqlite3Database
from nanocore.database.ActiveRecord import ActiveRecord
from nanocore.database.Exceptions import EmptyCondition, MissingPrimaryKey, SchemaUnavailable, UnsafeClause
from nanocore.database.active_record.Logging import query_logging
from nanocore.database.active_record.utils.ModelCollection import ModelCollection
from nanocore.database.active_record.utils.Schema import Schema


def seeded_db() -> Sqlite3Database:
    connection = sqlite3.connect(":memory:")
    connection.executescript(
        """
        CREATE TABLE users (id INTEGER PRIMARY KEY AUTOINCREMENT, name TEXT, email TEXT, status TEXT);
        CREATE TABLE products (id INTEGER PRIMARY KEY AUTOINCREMENT, title TEXT, price REAL);
        CREATE TABLE orders (id INTEGER PRIMARY KEY AUTOINCREMENT, user_id INTEGER, product_id INTEGER, status TEXT);
        """
    )
    return Sqlite3Database(connection=connection)


class ActiveRecordTestCase(TestCase):
    def setUp(self):
        self.db = seeded_db()

    def tearDown(self):
        self.db.close()

    def add_user(self, **values) -> ActiveRecord:
        user = ActiveRecord(self.db, "users").fill(values)
        user.save()
        return user


class TestConstruction(ActiveRecordTestCase):
    def test_schema_is_introspected(self):
        user = ActiveRecord(self.db, "users")
        self.assertEqual(user.known_fields, ("id", "name", "email", "status"))
        self.assertEqual(user.get_table(), "users")
        self.assertEqual(user.get_primary_key_column(), "id")

    def test_raw_sqlite_connection_is_accepted(self):
        user = ActiveRecord(self.db.connection, "users")
        self.assertIsInstance(user.db, Sqlite3Database)

    def test_missing_table(self):
        with self.assertRaises(SchemaUnavailable):
            ActiveRecord(self.db, "nonexistent_table")

    def test_injected_schema_skips_probing(self):
        db = mock.Mock(spec=Database)
        record = ActiveRecord(db, "users", schema=Schema("users", ("name",)))
        self.assertEqual(record.known_fields, ("name",))
        db.query.assert_not_called()


class TestFieldStore(ActiveRecordTestCase):
    def test_unknown_field_is_ignored(self):
        user = ActiveRecord(self.db, "users")
        user.set("password", "secret")
        user.nickname = "bob"
        self.assertIsNone(user.get("password"))
        self.assertIsNone(user.nickname)
        self.assertEqual(user.to_map(), {})

    def test_attribute_access(self):
        user = ActiveRecord(self.db, "users")
        user.name = "Alice"
        self.assertEqual(user.name, "Alice")
        self.assertEqual(user.get("name"), "Alice")
        self.assertIn("name", user)

    def test_column_named_like_a_method(self):
        self.db.execute("CREATE TABLE tasks (id INTEGER PRIMARY KEY AUTOINCREMENT, title TEXT, fill TEXT)")
        task = ActiveRecord(self.db, "tasks")
        task.title = "t"
        task.fill = "weekly"
        self.assertEqual(task.to_map(), {"title": "t", "fill": "weekly"})
        self.assertTrue(callable(task.fill))

        task.save()
        found = ActiveRecord(self.db, "tasks").find_by_id(task.get_id())
        self.assertEqual(found.get("fill"), "weekly")

    def test_attribute_writes_cannot_replace_internals(self):
        user = ActiveRecord(self.db, "users")
        user.db = "x"
        user.save = 1
        self.assertIs(user.db, self.db)
        self.assertTrue(callable(user.save))
        self.assertEqual(user.to_map(), {})

    def test_del_removes_value(self):
        user = ActiveRecord(self.db, "users").fill({"name": "A", "email": "a@x"})
        del user.name
        del user.status
        self.assertNotIn("name", user)
        self.assertEqual(user.to_map(), {"email": "a@x"})

    def test_primary_key_is_settable(self):
        user = ActiveRecord(self.db, "users", schema=Schema("users", ("name",)))
        user.set("id", 5)
        self.assertEqual(user.get_id(), 5)

    def test_fill_returns_record(self):
        user = ActiveRecord(self.db, "users")
        self.assertIs(user.fill({"name": "A"}, email="a@x"), user)
        self.assertEqual(user.to_map(), {"name": "A", "email": "a@x"})

    def test_to_map_is_a_copy(self):
        user = ActiveRecord(self.db, "users").fill({"name": "A"})
        user.to_map()["name"] = "B"
        self.assertEqual(user.name, "A")

    def test_to_dict_is_json_safe(self):
        record = ActiveRecord(self.db, "products").hydrate(
            {"id": 1, "title": b"\x00\x01", "price": Decimal("9.50"), "created": datetime(2024, 1, 2, 3, 4, 5)}
        )
        self.assertEqual(
            record.to_dict(),
            {"id": 1, "title": "AAE=", "price": "9.50", "created": "2024-01-02T03:04:05"},
        )

    def test_clear_is_idempotent(self):
        user = self.add_user(name="A").add_join("orders", "id", "user_id")
        user.clear()
        once = (user.to_map(), user.is_persisted(), len(user.joins()))
        user.clear()
        self.assertEqual((user.to_map(), user.is_persisted(), len(user.joins())), once)
        self.assertEqual(once, ({}, False, 0))


class TestStateTransitions(ActiveRecordTestCase):
    def test_lifecycle(self):
        user = ActiveRecord(self.db, "users")
        self.assertTrue(user.is_new())

        user.fill({"name": "A"}).save()
        self.assertTrue(user.is_persisted())

        fetched = ActiveRecord(self.db, "users").find_by_id(user.get_id())
        self.assertTrue(fetched.is_persisted())
        self.assertTrue(fetched.delete())
        self.assertFalse(fetched.is_persisted())
        self.assertEqual(fetched.to_map(), {})

    def test_find_by_and_find_all_hydrate(self):
        self.add_user(name="A", status="active")
        users = ActiveRecord(self.db, "users")
        self.assertTrue(all(r.is_persisted() for r in users.find_by("status", "active")))
        self.assertTrue(all(r.is_persisted() for r in users.find_all()))

    def test_find_by_id_miss_leaves_record_untouched(self):
        user = ActiveRecord(self.db, "users").fill({"name": "Draft"})
        self.assertIsNone(user.find_by_id(999))
        self.assertEqual(user.to_map(), {"name": "Draft"})
        self.assertTrue(user.is_new())

    def test_update_without_primary_key(self):
        user = ActiveRecord(self.db, "users")
        with self.assertRaises(MissingPrimaryKey):
            user.update({"name": "x"})


class TestScenarios(ActiveRecordTestCase):
    def test_insert_then_find(self):
        user = ActiveRecord(self.db, "users")
        self.assertTrue(user.fill({"name": "Jane", "email": "jane@x.com"}).save())
        self.assertIsNotNone(user.get_id())

        found = ActiveRecord(self.db, "users").find_by_id(user.get_id())
        self.assertEqual(found.get("name"), "Jane")

    def test_round_trip_adds_generated_key(self):
        values = {"title": "Lamp", "price": 12.5}
        product = ActiveRecord(self.db, "products").fill(values)
        product.save()

        found = ActiveRecord(self.db, "products").find_by_id(product.get_id())
        self.assertEqual(found.to_map(), {**values, "id": product.get_id()})

    def test_insert_keeps_explicit_primary_key(self):
        product = ActiveRecord(self.db, "products").fill({"id": 10, "title": "Lamp", "price": 1.0})
        with query_logging(product) as statements:
            self.assertTrue(product.save())

        sql, params = statements[0]
        self.assertEqual(sql, "INSERT INTO products (title, price) VALUES (:title, :price)")
        self.assertNotIn("id", params)
        self.assertEqual(product.get_id(), 10)
        self.assertTrue(product.is_persisted())

    def test_delete_where(self):
        self.add_user(name="A", status="inactive")
        self.add_user(name="B", status="inactive")
        self.add_user(name="C", status="active")
        users = ActiveRecord(self.db, "users")

        self.assertEqual(users.delete_where({"status": "inactive"}), 2)
        self.assertEqual(users.find_by("status", "inactive"), [])
        self.assertEqual(len(users.find_all()), 1)

    def test_fetch_with_joins(self):
        user = self.add_user(name="Alice")
        product = ActiveRecord(self.db, "products").fill({"title": "Lamp", "price": 10})
        product.save()
        order = ActiveRecord(self.db, "orders").fill(
            {"user_id": user.get_id(), "product_id": product.get_id(), "status": "paid"}
        )
        order.save()

        rows = (
            ActiveRecord(self.db, "orders")
            .add_join("users", "user_id", "id", "INNER", ["name"])
            .add_join("products", "product_id", "id", "LEFT", ["title"])
            .fetch_with_joins()
        )
        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0]["j0_name"], "Alice")
        self.assertEqual(rows[0]["j1_title"], "Lamp")
        self.assertEqual(rows[0]["status"], "paid")
        self.assertEqual(rows[0]["id"], order.get_id())

    def test_save_on_hydrated_record_updates(self):
        user = self.add_user(name="Old")
        record = ActiveRecord(self.db, "users").find_by_id(user.get_id())
        record.name = "New"

        with query_logging(record) as statements:
            self.assertTrue(record.save())
        self.assertEqual(len(statements), 1)
        self.assertTrue(statements[0][0].startswith("UPDATE users"))

        self.assertEqual(ActiveRecord(self.db, "users").find_by_id(user.get_id()).name, "New")
        self.assertEqual(len(ActiveRecord(self.db, "users").find_all()), 1)


class TestBoundaries(ActiveRecordTestCase):
    def test_delete_where_empty_conditions(self):
        users = ActiveRecord(self.db, "users")
        with query_logging(users) as statements:
            with self.assertRaises(EmptyCondition):
                users.delete_where({})
        self.assertEqual(statements, [])

    def test_delete_without_primary_key(self):
        user = ActiveRecord(self.db, "users").fill({"name": "A"})
        with query_logging(user) as statements:
            with self.assertRaises(MissingPrimaryKey):
                user.delete()
        self.assertEqual(statements, [])

    def test_unsafe_order_by_and_limit_execute_nothing(self):
        users = ActiveRecord(self.db, "users")
        with query_logging(users) as statements:
            with self.assertRaises(UnsafeClause):
                users.find_all(order_by="name; DROP TABLE users")
            with self.assertRaises(UnsafeClause):
                users.find_all(limit="10")
        self.assertEqual(statements, [])

    def test_driver_errors_propagate(self):
        connection = mock.Mock()
        connection.cursor.return_value.execute.side_effect = sqlite3.IntegrityError("boom")
        record = ActiveRecord(Sqlite3Database(connection=connection), "users", schema=Schema("users", ("name",)))
        with self.assertRaises(sqlite3.IntegrityError):
            record.fill({"name": "A"}).save()
        self.assertTrue(record.is_new())


class TestFinders(ActiveRecordTestCase):
    def test_find_all_orders_and_limits(self):
        for name in ["b", "c", "a"]:
            self.add_user(name=name)
        users = ActiveRecord(self.db, "users").find_all(order_by="name DESC", limit=2)
        self.assertIsInstance(users, ModelCollection)
        self.assertEqual(users.pluck("name"), ["c", "b"])

    def test_find_results_are_fresh_records(self):
        self.add_user(name="A")
        users = ActiveRecord(self.db, "users").add_join("orders", "id", "user_id")
        found = users.find_by("name", "A")
        self.assertIsNot(found.first(), users)
        self.assertEqual(len(found.first().joins()), 0)
        self.assertEqual(found.first().known_fields, users.known_fields)

    def test_find_all_ignores_joins(self):
        self.add_user(name="A")
        users = ActiveRecord(self.db, "users").add_join("orders", "id", "user_id")
        self.assertEqual(len(users.find_all()), 1)

    def test_collection_serializes(self):
        self.add_user(name="A", email="a@x", status="active")
        rows = ActiveRecord(self.db, "users").find_all().to_list_dict()
        self.assertEqual(rows, [{"id": 1, "name": "A", "email": "a@x", "status": "active"}])
