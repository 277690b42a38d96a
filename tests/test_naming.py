"""Tests for logical key parsing, storage ids and value encoding."""
import pytest

from config_vault.vault.domains.models import InvalidNamespaceError, Namespace
from config_vault.vault.domains.naming import KeyPath, is_shared, storage_id
from config_vault.vault.domains.value_codec import SecretDecodeError, decode, encode


@pytest.fixture
def namespace():
    return Namespace(project="p", group="g", env="e")


class TestNamespace:
    """Test suite for namespace prefixes."""

    def test_prefixes_with_every_part(self, namespace):
        assert namespace.scoped_prefix == "p-g-e"
        assert namespace.shared_prefix == "p-e"

    def test_prefixes_without_group(self):
        namespace = Namespace(project="p", env="e")

        assert namespace.scoped_prefix == "p-e"
        assert namespace.shared_prefix == "p-e"

    def test_prefixes_project_only(self):
        namespace = Namespace(project="p")

        assert namespace.scoped_prefix == "p"
        assert namespace.shared_prefix == "p"

    def test_default_shared_group(self, namespace):
        assert namespace.shared_group == "SHARED"

    def test_group_requires_env(self):
        """Test that p/group=g is rejected since it would share ids with p/env=g."""
        with pytest.raises(InvalidNamespaceError) as exc_info:
            Namespace(project="p", group="g")

        assert "needs an env" in str(exc_info.value)

    @pytest.mark.parametrize("parts", [
        {"project": "a-b"},
        {"project": "a", "group": "b-c", "env": "e"},
        {"project": "a", "env": "e_f"},
        {"project": "my project"},
        {"project": "a.b"},
    ])
    def test_separators_in_parts_are_rejected(self, parts):
        """Test that parts which would be split or joined by normalization are rejected."""
        with pytest.raises(InvalidNamespaceError):
            Namespace(**parts)

    def test_project_is_required(self):
        with pytest.raises(InvalidNamespaceError):
            Namespace(project="")


class TestKeyPath:
    """Test suite for KeyPath parsing."""

    def test_parse_colon_separated_key(self):
        """Test that ':' separates levels."""
        path = KeyPath.parse("car:engine:power")

        assert path.segments == ("car", "engine", "power")
        assert path.name == "power"
        assert path.parent == "car--engine"
        assert not path.shared

    def test_parse_flattened_key(self):
        """Test that '--' separates levels as well."""
        path = KeyPath.parse("car--engine--power")

        assert path.segments == ("car", "engine", "power")
        assert path.flat_key == "car--engine--power"

    def test_shared_sigil_on_last_segment(self):
        """Test that a leading $ marks the key as shared and is stripped from the name."""
        path = KeyPath.parse("parent:$global_var")

        assert path.shared
        assert path.name == "global_var"
        assert path.parent == "parent"

    def test_shared_sigil_on_ancestor_segment(self):
        """Test that a $ on any segment marks the key as shared."""
        assert KeyPath.parse("$parent:child").shared
        assert is_shared("$parent:child")

    def test_single_segment_key(self):
        path = KeyPath.parse("key")

        assert path.name == "key"
        assert path.parent == ""


class TestStorageId:
    """Test suite for storage id computation."""

    def test_scoped_key(self, namespace):
        assert storage_id("k", namespace) == "p-g-e-k"

    def test_scoped_key_without_group(self):
        assert storage_id("k", Namespace(project="p", env="e")) == "p-e-k"

    def test_shared_key_uses_shared_prefix(self, namespace):
        assert storage_id("$gk", namespace) == "p-e-gk"

    def test_nested_key_uses_double_dash(self, namespace):
        assert storage_id("db:user", namespace) == "p-g-e-db--user"
        assert storage_id("db--user", namespace) == "p-g-e-db--user"

    def test_shared_nested_key(self, namespace):
        assert storage_id("db:$password", namespace) == "p-e-db--password"

    def test_underscores_and_spaces_collapse_to_dash(self, namespace):
        assert storage_id("my__secret key", namespace) == "p-g-e-my-secret-key"

    def test_result_is_lower_case(self):
        namespace = Namespace(project="Billing", group="API", env="Prod")

        assert storage_id("DB:Password", namespace) == "billing-api-prod-db--password"

    def test_groups_do_not_collide(self):
        ids = {
            storage_id("k", Namespace(project="p", group=group, env="e"))
            for group in ("g1", "g2", None)
        }

        assert len(ids) == 3

    def test_distinct_namespaces_never_share_scoped_ids(self):
        """Test that every accepted project/group/env triple gets its own scoped prefix."""
        namespaces = [
            Namespace(project="p"),
            Namespace(project="p", env="g"),
            Namespace(project="p", env="e"),
            Namespace(project="p", group="g", env="e"),
            Namespace(project="p", group="e", env="g"),
            Namespace(project="pg"),
            Namespace(project="pg", env="e"),
        ]

        prefixes = {namespace.scoped_prefix for namespace in namespaces}

        assert len(prefixes) == len(namespaces)


class TestValueCodec:
    """Test suite for value encoding."""

    def test_string_passes_through(self):
        assert encode("anyString") == ("anyString", "0")

    @pytest.mark.parametrize("value", [
        {"anyProp": "anyValue", "anyNumber": 18, "anyBoolean": True, "anyNull": None},
        ["anyValue1", "anyValue2"],
        18,
        2.5,
        True,
        None,
    ])
    def test_non_strings_are_serialized(self, value):
        payload, serialized = encode(value)

        assert isinstance(payload, str)
        assert serialized == "1"
        assert decode(payload, serialized) == value

    def test_decode_plain_value(self):
        assert decode('["not", "parsed"]', "0") == '["not", "parsed"]'

    def test_decode_accepts_boolean_flag(self):
        assert decode("[1, 2]", True) == [1, 2]

    def test_decode_empty_serialized_value(self):
        assert decode("", "1") == ""

    def test_decode_malformed_value_raises(self):
        with pytest.raises(SecretDecodeError) as exc_info:
            decode("{not json", "1", "p-g-e-broken")

        assert exc_info.value.storage_id == "p-g-e-broken"
        assert "p-g-e-broken" in str(exc_info.value)
