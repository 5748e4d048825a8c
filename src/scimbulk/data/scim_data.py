from collections.abc import Mapping, MutableMapping
from typing import Any, Iterable, Optional, Union


class InvalidType:
    _instance = None

    def __new__(cls, *args, **kwargs):
        if cls._instance is None:
            cls._instance = super().__new__(cls, *args, **kwargs)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "Invalid"


Invalid = InvalidType()


class MissingType:
    _instance = None

    def __new__(cls, *args, **kwargs):
        if cls._instance is None:
            cls._instance = super().__new__(cls, *args, **kwargs)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "Missing"


Missing = MissingType()


def _split_key(key: str) -> tuple[str, Optional[str]]:
    # schema URIs contain dots (e.g. '...:2.0:User'), so they are never split
    if key.lower().startswith("urn:") or "." not in key:
        return key, None
    attr, sub_attr = key.split(".", 1)
    return attr, sub_attr


class ScimData(MutableMapping):
    """
    Mapping that implements reading and updating data which is in line with SCIM requirements.
    Attribute names are case-insensitive, and the casing of the first occurrence is preserved.
    Sub-attributes can be accessed with `attr.subAttr` keys. Nested mappings are converted
    to `ScimData` as well, so every nesting level behaves the same way.
    """

    def __init__(self, d: Optional[Union[Mapping[str, Any], "ScimData"]] = None):
        """
        Args:
            d: Optional data to initialize `ScimData` with. Keys that are not strings are ignored.

        Examples:
            >>> data = ScimData({"displayName": "Admins", "members": [{"value": "42"}]})
            >>> data.get("DISPLAYNAME")
            "Admins"
            >>> data.get("members.value")
            ["42"]
        """
        self._data: dict[str, Any] = {}
        self._lower_case_to_original: dict[str, str] = {}

        if isinstance(d, ScimData):
            self._data = d._data
            self._lower_case_to_original = d._lower_case_to_original
        elif isinstance(d, Mapping):
            for key, value in d.items():
                if not isinstance(key, str):
                    continue
                self._set_top_level(key, value)

    def __repr__(self):
        return f"{self.__class__.__name__}({str(self._data)})"

    def __getitem__(self, key: str):
        value = self.get(key)
        if value is Missing:
            raise KeyError(key)
        return value

    def __setitem__(self, key: str, value: Any):
        self.set(key, value)

    def __delitem__(self, key: str):
        value = self.pop(key)
        if value is Missing:
            raise KeyError(key)

    def __len__(self) -> int:
        return len(self._data)

    def __iter__(self):
        return iter(self._data)

    def original_key(self, key: str) -> Optional[str]:
        """
        Returns the key under which the value for `key` is actually stored, or `None`
        if there is no such key.
        """
        return self._lower_case_to_original.get(key.lower())

    @staticmethod
    def _convert(value: Any) -> Any:
        if isinstance(value, Mapping) and not isinstance(value, ScimData):
            return ScimData(value)
        if isinstance(value, list) or (
            not isinstance(value, (str, bytes, ScimData)) and isinstance(value, Iterable)
        ):
            return [
                ScimData(item) if isinstance(item, Mapping) and not isinstance(item, ScimData)
                else item
                for item in value
            ]
        return value

    def _set_top_level(self, key: str, value: Any) -> None:
        original_key = self._lower_case_to_original.get(key.lower())
        if original_key is None:
            original_key = key
            self._lower_case_to_original[key.lower()] = key
        self._data[original_key] = self._convert(value)

    def set(self, key: str, value: Any) -> None:
        """
        Sets the entry in the mapping. Equivalent to `data[key] = value`. If `key` represents
        a sub-attribute, the value is nested under the parent attribute, which is created
        if it does not exist.

        Raises:
            KeyError: If trying to set sub-attribute value to existing parent that is
                not single-valued complex attribute value.
        """
        attr, sub_attr = _split_key(key)
        if sub_attr is None:
            self._set_top_level(attr, value)
            return

        parent_key = self._lower_case_to_original.get(attr.lower())
        if parent_key is None:
            self._set_top_level(attr, ScimData())
            parent_key = attr
        parent_value = self._data[parent_key]
        if not isinstance(parent_value, ScimData):
            raise KeyError(f"can not assign ({sub_attr}, {value}) to '{attr}'")
        parent_value.set(sub_attr, value)

    def get(self, key: str, default: Any = Missing) -> Any:
        """
        Returns the value for the specified `key`. If not found, the specified `default`
        is returned (`Missing` object by default). For sub-attributes of multi-valued complex
        attributes, list of values is returned.
        """
        attr, sub_attr = _split_key(key)
        original_key = self._lower_case_to_original.get(attr.lower())
        if original_key is None:
            return default

        value = self._data[original_key]
        if sub_attr is None:
            return value
        if isinstance(value, ScimData):
            return value.get(sub_attr, default)
        if isinstance(value, list):
            return [
                item.get(sub_attr, default) if isinstance(item, ScimData) else default
                for item in value
            ]
        return default

    def pop(self, key: str, default: Any = Missing) -> Any:
        """
        Pops the `key` from the data. Works similarly to `get` with the difference that after
        returning the value, it is not available in the data any longer.
        """
        attr, sub_attr = _split_key(key)
        original_key = self._lower_case_to_original.get(attr.lower())
        if original_key is None:
            return default

        if sub_attr is not None:
            value = self._data[original_key]
            if isinstance(value, ScimData):
                return value.pop(sub_attr, default)
            if isinstance(value, list):
                return [
                    item.pop(sub_attr, default) if isinstance(item, ScimData) else default
                    for item in value
                ]
            return default

        self._lower_case_to_original.pop(attr.lower())
        return self._data.pop(original_key, default)

    def to_dict(self) -> dict[str, Any]:
        """
        Converts the `ScimData` to ordinary dictionary.
        """
        output: dict[str, Any] = {}
        for key, value in self._data.items():
            if isinstance(value, ScimData):
                output[key] = value.to_dict()
            elif isinstance(value, list):
                value_output = []
                for item in value:
                    if isinstance(item, ScimData):
                        value_output.append(item.to_dict())
                    else:
                        value_output.append(item)
                output[key] = value_output
            else:
                output[key] = value
        return output

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, Mapping) and not isinstance(other, ScimData):
            other = ScimData(other)

        if not isinstance(other, ScimData):
            return False

        if len(self) != len(other):
            return False

        for key, value in self._data.items():
            other_key = other.original_key(key)
            if other_key is None or other._data[other_key] != value:
                return False

        return True
