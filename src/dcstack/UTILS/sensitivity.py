# Copyright 2024 Michael Maillet, Damien Davison, Sacha Davison
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Heuristics for recognising credentials in environment variables.
"""
import re

SECRETS_PATH = "/run/secrets"
FILE_SUFFIX = "_FILE"
SENSITIVE_KEYWORDS = (
    "PASSWD",
    "PASSWORD",
    "SECRET",
    "KEY",
    "TOKEN",
    "API_KEY",
    "APIKEY",
    "PRIVATE",
)

_NON_ALNUM = re.compile(r'[^A-Z0-9]+')


def is_sensitive_key(key: str, value: str = "") -> bool:
    """
    Checks whether an environment variable holds a credential.

    Keys ending in _FILE point at a credential rather than holding one, and
    values under /run/secrets are already secret references.

    :param key: The variable name.
    :param value: The variable value, if known.
    :return: True if the variable should not be stored in plain text.
    """
    upper = key.upper()
    if upper.endswith(FILE_SUFFIX):
        return False
    if value and value.startswith(SECRETS_PATH):
        return False
    return any(keyword in upper for keyword in SENSITIVE_KEYWORDS)


def normalize_env_key(key: str) -> str:
    """
    Folds a key to the form used in the secret store and environment file:
    upper case, non-alphanumeric runs collapsed to "_", no leading or
    trailing "_".
    """
    return _NON_ALNUM.sub("_", key.upper()).strip("_")


def mask_value(value: str) -> str:
    """
    Hides a secret value for log output.
    """
    if len(value) <= 3:
        return "***"
    return value[:3] + "***"
