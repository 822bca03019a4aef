"""Settings library for the client configuration.

Provides:
    - Schema validation and enforcement for the client.json structure.
    - Loading, saving, reverting, and managing application settings.
    - Defaults for the API address, the wire mapping, display metadata and categories.
"""

import copy
import json
import logging
import os
import pathlib
import re
from typing import Dict, Any, Optional, List, Union

from PySide6 import QtCore

from ..core.record import Category, DEFAULT_MAPPING
from ..status import status

app_name: str = 'ExpenseClient'

BASE_URL_ENV_KEY: str = 'EXPENSE_API_BASE_URL'
DEFAULT_TIMEOUT: float = 10.0


def is_valid_hex_color(value: str) -> bool:
    """Check if a string is a valid hexadecimal color in #RRGGBB format.

    Args:
        value (str): Color string to validate.

    Returns:
        bool: True if value matches '#RRGGBB', False otherwise.
    """
    return bool(re.fullmatch(r'#[0-9A-Fa-f]{6}', value))


MAPPING_KEYS: List[str] = list(DEFAULT_MAPPING.keys())
CATEGORY_KEYS: List[str] = [c.value for c in Category]
SORT_KEYS: List[str] = ['date', 'amount', 'title', 'category']
SORT_DIRECTIONS: List[str] = ['asc', 'desc']

METADATA_KEYS: List[str] = [
    'locale',
    'currency',
    'page_size',
    'sort_key',
    'sort_direction',
]

CONFIG_SCHEMA: Dict[str, Any] = {
    'api': {
        'type': dict,
        'required': True,
        'item_schema': {
            'base_url': {'type': str, 'required': True},
            'timeout': {'type': (int, float), 'required': True},
        }
    },
    'mapping': {
        'type': dict,
        'required': True,
        'required_keys': MAPPING_KEYS,
        'value_type': str,
    },
    'metadata': {
        'type': dict,
        'required': True,
        'required_keys': METADATA_KEYS,
        'item_schema': {
            'locale': {'type': str, 'required': True},
            'currency': {'type': str, 'required': True},
            'page_size': {'type': int, 'required': True},
            'sort_key': {'type': str, 'required': True, 'allowed_values': SORT_KEYS},
            'sort_direction': {'type': str, 'required': True, 'allowed_values': SORT_DIRECTIONS},
        }
    },
    'categories': {
        'type': dict,
        'required': True,
        'required_keys': CATEGORY_KEYS,
        'item_schema': {
            'display_name': {'type': str, 'required': True},
            'color': {'type': str, 'required': True, 'format': 'hexcolor'},
            'icon': {'type': str, 'required': True},
        }
    }
}

DEFAULT_CONFIG: Dict[str, Any] = {
    'api': {
        'base_url': 'http://localhost:5000',
        'timeout': DEFAULT_TIMEOUT,
    },
    'mapping': dict(DEFAULT_MAPPING),
    'metadata': {
        'locale': 'en_US',
        'currency': 'USD',
        'page_size': 10,
        'sort_key': 'date',
        'sort_direction': 'desc',
    },
    'categories': {
        'food': {'display_name': 'Food & Dining', 'color': '#FF6B6B', 'icon': 'restaurant'},
        'transport': {'display_name': 'Transportation', 'color': '#4ECDC4', 'icon': 'directions_car'},
        'housing': {'display_name': 'Housing', 'color': '#45B7D1', 'icon': 'home'},
        'shopping': {'display_name': 'Shopping', 'color': '#96CEB4', 'icon': 'shopping_cart'},
        'health': {'display_name': 'Health & Medical', 'color': '#FFEAA7', 'icon': 'local_hospital'},
        'education': {'display_name': 'Education', 'color': '#DDA0DD', 'icon': 'school'},
        'other': {'display_name': 'Other', 'color': '#98D8C8', 'icon': 'category'},
    },
}


def _validate_items(section: str, data: Dict[str, Any], item_schema: Dict[str, Any]) -> None:
    """Validate the fields of a flat section against its item schema.

    Raises:
        ValueError: If a required field is missing or a value is not allowed.
        TypeError: If a field has the wrong type.
    """
    logging.debug(f'Validating "{section}" section.')
    for field, specs in item_schema.items():
        if field not in data:
            if specs.get('required'):
                msg = f'"{section}" is missing "{field}".'
                logging.error(msg)
                raise ValueError(msg)
            continue
        value = data[field]
        if isinstance(value, bool) or not isinstance(value, specs['type']):
            msg = f'"{section}.{field}" must be {specs["type"]}, got {type(value)}.'
            logging.error(msg)
            raise TypeError(msg)
        allowed = specs.get('allowed_values')
        if allowed and value not in allowed:
            msg = f'"{section}.{field}" must be one of {allowed}, got "{value}".'
            logging.error(msg)
            raise ValueError(msg)


def _validate_mapping(mapping_dict: Dict[str, Any], specs: Dict[str, Any]) -> None:
    """Validate the 'mapping' section of the client configuration.

    Ensures mapping_dict has exactly the required keys, that every value is a non-empty string,
    and that no two logical fields share a wire key.

    Args:
        mapping_dict: Mapping from logical field names to wire keys.
        specs: Schema dict containing 'required_keys' and 'value_type'.

    Raises:
        ValueError: If keys do not match required_keys, or wire keys are empty or duplicated.
        TypeError: If a mapping value is not of the expected type.
    """
    logging.debug('Validating "mapping" section.')
    required_keys = set(specs['required_keys'])
    if set(mapping_dict.keys()) != required_keys:
        msg: str = (
            f'mapping must have keys {sorted(required_keys)}, '
            f'got {sorted(mapping_dict.keys())}.'
        )
        logging.error(msg)
        raise ValueError(msg)
    for key, val in mapping_dict.items():
        if not isinstance(val, specs['value_type']):
            msg = 'All mapping values must be strings.'
            logging.error(msg)
            raise TypeError(msg)
        if not val.strip():
            msg = f'Mapping for "{key}" must not be empty.'
            logging.error(msg)
            raise ValueError(msg)
    values = list(mapping_dict.values())
    duplicates = sorted({v for v in values if values.count(v) > 1})
    if duplicates:
        msg = f'Wire keys must be unique, found duplicates: {duplicates}.'
        logging.error(msg)
        raise ValueError(msg)


def _validate_categories(categories_dict: Dict[str, Any], specs: Dict[str, Any]) -> None:
    """Validate the 'categories' section of the client configuration.

    Ensures categories_dict lists exactly the fixed categories, each a dict of required fields
    matching the item schema.

    Args:
        categories_dict: Mapping of category identifiers to their display configuration.
        specs: Schema dict containing 'required_keys' and 'item_schema'.

    Raises:
        TypeError: If an entry is not a dict or a field has the wrong type.
        ValueError: If categories are missing or unknown, a field is missing, or a color is invalid.
    """
    logging.debug('Validating "categories" section.')
    if set(categories_dict.keys()) != set(specs['required_keys']):
        msg: str = (
            f'categories must have keys {sorted(specs["required_keys"])}, '
            f'got {sorted(categories_dict.keys())}.'
        )
        logging.error(msg)
        raise ValueError(msg)
    item_schema = specs['item_schema']
    for cat_name, cat_info in categories_dict.items():
        if not isinstance(cat_info, dict):
            msg = f'Category "{cat_name}" must be a dict.'
            logging.error(msg)
            raise TypeError(msg)
        _validate_items(f'categories.{cat_name}', cat_info, item_schema)
        for field, field_specs in item_schema.items():
            if field_specs.get('format') == 'hexcolor' and not is_valid_hex_color(cat_info[field]):
                msg = (
                    f'Category "{cat_name}" field "{field}" must be a valid '
                    f'hex color (#RRGGBB), got "{cat_info[field]}".'
                )
                logging.error(msg)
                raise ValueError(msg)


def validate_config_data(data: Dict[str, Any]) -> None:
    """Validate configuration data against :data:`CONFIG_SCHEMA`.

    Raises:
        status.ConfigInvalidException: If a required section is missing or has the wrong type.
        ValueError, TypeError: If a section's content is invalid.
    """
    if not data:
        raise status.ConfigInvalidException('Config data is empty.')

    logging.debug('Validating config data against schema.')
    for field, specs in CONFIG_SCHEMA.items():
        if specs.get('required') and field not in data:
            raise status.ConfigInvalidException(f'Missing required field: {field}')

        if not isinstance(data[field], specs['type']):
            raise status.ConfigInvalidException(
                f'Field "{field}" must be {specs["type"]}, got {type(data[field])}.'
            )

        if field == 'mapping':
            _validate_mapping(data[field], specs)
        elif field == 'categories':
            _validate_categories(data[field], specs)
        else:
            _validate_items(field, data[field], specs['item_schema'])

    if data['api']['timeout'] <= 0:
        msg = '"api.timeout" must be positive.'
        logging.error(msg)
        raise ValueError(msg)
    if data['metadata']['page_size'] < 1:
        msg = '"metadata.page_size" must be at least 1.'
        logging.error(msg)
        raise ValueError(msg)

    logging.debug('Config data is valid.')


class ConfigPaths:
    """Manage application file paths and ensure the config directory and file exist.

    Args:
        root: Optional directory to use instead of the platform's application data location.
    """

    def __init__(self, root: Optional[Union[str, pathlib.Path]] = None) -> None:
        if root is None:
            QtCore.QCoreApplication.setApplicationName(app_name)
            QtCore.QCoreApplication.setOrganizationName('')
            logging.debug(f'Setting application name: {app_name}')

            p = QtCore.QStandardPaths.writableLocation(QtCore.QStandardPaths.AppDataLocation)
            root = pathlib.Path(p)
        self.root_dir: pathlib.Path = pathlib.Path(root)
        logging.debug(f'Using app data directory: {self.root_dir}')

        self.config_dir: pathlib.Path = self.root_dir / 'config'
        self.export_dir: pathlib.Path = self.root_dir / 'exports'
        self.config_path: pathlib.Path = self.config_dir / 'client.json'

        self._verify_and_prepare()

    def _verify_and_prepare(self) -> None:
        """Create missing directories and write the default config if none exists."""
        for path in (self.config_dir, self.export_dir):
            if not path.exists():
                logging.debug(f'Creating directory: {path}')
                path.mkdir(parents=True, exist_ok=True)

        if not self.config_path.exists():
            logging.debug(f'Writing default config to {self.config_path}')
            self.revert_config_to_default()

    def revert_config_to_default(self) -> None:
        """Overwrite client.json with :data:`DEFAULT_CONFIG`."""
        with self.config_path.open('w', encoding='utf-8') as f:
            json.dump(DEFAULT_CONFIG, f, indent=4, ensure_ascii=False)


class SettingsAPI(ConfigPaths):
    """
    Provides an interface to get/set/revert/save client.json sections.

    Args:
        root: Optional directory holding the config, see :class:`ConfigPaths`.
    """

    def __init__(self, root: Optional[Union[str, pathlib.Path]] = None) -> None:
        super().__init__(root=root)

        self._signals_blocked: bool = False

        self.config_data: Dict[str, Any] = {k: {} for k in CONFIG_SCHEMA}
        self.load_config()

    def __getitem__(self, key: str) -> Any:
        """Retrieve a metadata value using dictionary-style access.

        Raises:
            KeyError: If key is not in METADATA_KEYS.
        """
        if key not in METADATA_KEYS:
            raise KeyError(f'Invalid metadata key: {key}, must be one of {METADATA_KEYS}')

        _type = CONFIG_SCHEMA['metadata']['item_schema'][key]['type']
        v = self.config_data['metadata'].get(key)
        if not isinstance(v, _type):
            logging.error(f'Metadata key "{key}" is not of type {_type}, got {type(v)}.')
            return None
        return v

    def __setitem__(self, key: str, value: Any) -> None:
        """Assign a metadata value using dictionary-style access and persist it.

        Values of the wrong type are converted to the schema type when possible.

        Raises:
            KeyError: If key is not in METADATA_KEYS.
            ValueError: If the value cannot be converted or is not allowed.
        """
        if key not in METADATA_KEYS:
            raise KeyError(f'Invalid metadata key: {key}, must be one of {METADATA_KEYS}')

        specs = CONFIG_SCHEMA['metadata']['item_schema'][key]
        _type = specs['type']
        if not isinstance(value, _type):
            logging.warning(f'Metadata key "{key}" is not of type {_type}, got {type(value)}.')
            try:
                value = _type(value)
            except (TypeError, ValueError):
                logging.error(f'Cannot convert "{value}" to {_type.__name__}.')
                raise ValueError(f'Cannot convert "{value}" to {_type.__name__}.') from None

        allowed = specs.get('allowed_values')
        if allowed and value not in allowed:
            raise ValueError(f'Metadata key "{key}" must be one of {allowed}, got "{value}".')

        self.config_data['metadata'][key] = value
        self.save_section('metadata')

        if self._signals_blocked:
            return

        from ..ui.actions import signals
        signals.metadataChanged.emit(key, value)

    def block_signals(self, v: bool) -> None:
        """Enable or disable emission of configuration change signals."""
        self._signals_blocked = v

    def _emit_section_changed(self, section_name: str) -> None:
        if self._signals_blocked:
            return
        from ..ui.actions import signals
        signals.configSectionChanged.emit(section_name)

    @property
    def base_url(self) -> str:
        """The API base url. The environment variable takes precedence over the config file.

        Raises:
            status.BaseUrlNotConfiguredException: If no address is configured.
        """
        url = os.environ.get(BASE_URL_ENV_KEY) or self.config_data['api'].get('base_url', '')
        if not url:
            raise status.BaseUrlNotConfiguredException
        return url

    @property
    def timeout(self) -> float:
        return float(self.config_data['api'].get('timeout', DEFAULT_TIMEOUT))

    def load_config(self) -> Dict[str, Any]:
        """Load client.json from disk and validate against schema.

        Returns:
            The loaded config data dictionary.

        Raises:
            status.ConfigNotFoundException: If client.json is missing.
            status.ConfigInvalidException: If JSON parsing or validation fails.
        """
        logging.debug(f'Loading config from "{self.config_path}"')
        if not self.config_path.exists():
            raise status.ConfigNotFoundException(str(self.config_path))

        try:
            with self.config_path.open('r', encoding='utf-8') as f:
                data: Dict[str, Any] = json.load(f)
            validate_config_data(data)
        except status.ConfigInvalidException:
            raise
        except (ValueError, TypeError, KeyError) as ex:
            raise status.ConfigInvalidException(str(ex)) from ex

        self.config_data = data
        return self.config_data

    def validate_config_data(self, data: Optional[Dict[str, Any]] = None) -> None:
        """Validate config data, defaulting to the loaded data."""
        validate_config_data(self.config_data if data is None else data)

    def get_section(self, section_name: str) -> Dict[str, Any]:
        """Retrieve a copy of a configuration section.

        Raises:
            KeyError: If section_name is not a known section.
        """
        return copy.deepcopy(self.config_data[section_name])

    def set_section(self, section_name: str, new_data: Dict[str, Any]) -> None:
        """Replace, validate and persist a configuration section.

        The previous section is restored if validation fails.

        Raises:
            ValueError: If section_name is unknown or the data is invalid.
            TypeError: If the data has the wrong types.
            status.ConfigInvalidException: If the section has the wrong container type.
        """
        if section_name not in CONFIG_SCHEMA:
            msg: str = f'Unknown section_name for set: "{section_name}"'
            logging.error(msg)
            raise ValueError(msg)

        current_section_data = self.config_data.get(section_name)
        self.config_data[section_name] = copy.deepcopy(new_data)
        try:
            self.validate_config_data()
        except (ValueError, TypeError, status.ConfigInvalidException) as e:
            logging.error(f'Validation error on set_section("{section_name}"): {e}')
            self.config_data[section_name] = current_section_data
            raise

        self.save_section(section_name)
        self._emit_section_changed(section_name)

    def reload_section(self, section_name: str) -> None:
        """Reload a configuration section from disk.

        Raises:
            ValueError: If section_name is unknown or the file content is invalid.
        """
        if section_name not in CONFIG_SCHEMA:
            msg: str = f'Unknown section_name for reload: "{section_name}"'
            logging.error(msg)
            raise ValueError(msg)

        logging.debug(f'Reloading section "{section_name}" from disk.')
        with self.config_path.open('r', encoding='utf-8') as f:
            data: Dict[str, Any] = json.load(f)
        validate_config_data(data)
        self.config_data[section_name] = data[section_name]
        self._emit_section_changed(section_name)

    def revert_section(self, section_name: str) -> None:
        """Revert a configuration section to its default and save it.

        Raises:
            ValueError: If section_name is unknown.
        """
        if section_name not in CONFIG_SCHEMA:
            msg: str = f'Unknown section_name for revert: "{section_name}"'
            logging.error(msg)
            raise ValueError(msg)

        self.config_data[section_name] = copy.deepcopy(DEFAULT_CONFIG[section_name])
        self.save_section(section_name)
        self._emit_section_changed(section_name)

    def save_section(self, section_name: str) -> None:
        """Persist a single configuration section, leaving the other sections on disk untouched.

        Raises:
            ValueError: If section_name is unknown.
        """
        if section_name not in CONFIG_SCHEMA:
            msg: str = f'Unknown section_name for save: "{section_name}"'
            logging.error(msg)
            raise ValueError(msg)

        logging.debug(f'Saving section "{section_name}" to "{self.config_path}"')
        try:
            with self.config_path.open('r', encoding='utf-8') as f:
                on_disk: Dict[str, Any] = json.load(f)
        except (OSError, json.JSONDecodeError):
            logging.warning(f'Could not read "{self.config_path}", rewriting it from memory.')
            on_disk = copy.deepcopy(self.config_data)

        on_disk[section_name] = self.config_data[section_name]
        with self.config_path.open('w', encoding='utf-8') as f:
            json.dump(on_disk, f, indent=4, ensure_ascii=False)

    def save_all(self) -> None:
        """Validate and write the whole config, rolling back in-memory data on failure."""
        logging.debug('Saving all settings.')
        original = copy.deepcopy(self.config_data)
        try:
            self.validate_config_data()
        except (ValueError, TypeError, status.ConfigInvalidException) as e:
            logging.error(f'Failed to save config: {e}. Rolling back.')
            self.config_data = original
            raise
        with self.config_path.open('w', encoding='utf-8') as f:
            json.dump(self.config_data, f, indent=4, ensure_ascii=False)

    def category_display(self, category: Any) -> Dict[str, str]:
        """Return the display configuration of a category, resolving unknown values to 'other'."""
        key = Category.resolve(category).value
        return dict(self.config_data['categories'][key])


settings: Optional[SettingsAPI] = None


def get_settings() -> SettingsAPI:
    """Return the process-wide settings, creating them on first use."""
    global settings
    if settings is None:
        settings = SettingsAPI()
    return settings
