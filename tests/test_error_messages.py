from clean_madurai.errors import CollaboratorError
from clean_madurai.services.error_messages import DEFAULT_MESSAGE, normalize


def test_none_gives_fallback():
    assert normalize(None) == DEFAULT_MESSAGE
    assert normalize(None, "Unable to sign in right now.") == "Unable to sign in right now."


def test_override_wins_over_builtin_table():
    err = CollaboratorError("auth/invalid-credential")
    overrides = {"auth/invalid-credential": "Email or password is incorrect."}
    assert normalize(err, overrides=overrides) == "Email or password is incorrect."
    assert normalize(err, overrides={"AUTH/INVALID-CREDENTIAL": "custom"}) == "custom"


def test_builtin_table_by_code():
    assert normalize({"code": "auth/too-many-requests"}) == "Too many attempts. Try again in a few minutes."
    assert normalize(CollaboratorError("unavailable", "db down")) == "Service is temporarily unavailable. Please retry shortly."


def test_brand_prefix_and_code_suffix_are_stripped():
    err = {"code": "auth/custom-thing", "message": "Firebase: Error Something odd happened (auth/custom-thing)."}
    assert normalize(err) == "Something odd happened"


def test_driver_prefix_and_sql_trailer_are_stripped():
    err = {"message": "(sqlite3.OperationalError) database is locked [SQL: UPDATE documents SET payload=?]"}
    assert normalize(err) == "database is locked"


def test_plain_message_is_kept():
    assert normalize(ValueError("Ward is required")) == "Ward is required"
    assert normalize("Upload interrupted") == "Upload interrupted"


def test_message_equal_to_code_falls_back():
    assert normalize(CollaboratorError("functions/internal"), "Try again later.") == "Try again later."


def test_never_raises_on_odd_input():
    class Weird:
        @property
        def code(self):
            raise RuntimeError("boom")

    assert normalize(Weird(), "fallback") == "fallback"
    assert normalize(object(), "fallback") == "fallback"
