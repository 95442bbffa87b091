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
Utilities for string interpolation of ${VAR} and $VAR placeholders.
"""
import re
from typing import Callable, List, Optional, Set

Lookup = Callable[[str], Optional[str]]


class EnvironmentInterpolator:
    """
    Utility for interpolating variables in strings.
    Supports ${VAR}, $VAR, ${VAR:-default} and ${VAR:+value}; $$ is an
    escaped dollar sign and is left as written.
    """
    # Group 1: braced name, group 2: - or +, group 3: default/alternative
    # Group 4: bare name
    PATTERN = re.compile(
        r'\$\$'
        r'|\$\{([A-Za-z_][A-Za-z0-9_]*)(?::([-+])([^}]*))?\}'
        r'|\$([A-Za-z_][A-Za-z0-9_]*)'
    )

    @staticmethod
    def interpolate(template: str,
                    lookup: Lookup,
                    missing: Optional[Set[str]] = None,
                    keep_unresolved: bool = False,
                    escape_values: bool = False) -> str:
        """
        Interpolates placeholders in the template using the lookup function.
        Substituted values are never scanned again.

        :param template: The string containing placeholders.
        :param lookup: Returns the value of a variable, or None if unknown.
        :param missing: Collects names that could not be resolved.
        :param keep_unresolved: Leave unresolved placeholders as written
            instead of replacing them with an empty string.
        :param escape_values: Double any "$" in substituted values so that a
            later compose interpolation reads them literally.
        :return: The interpolated string.
        """
        def replace(match):
            """
            Internal replacement function for re.sub.
            """
            if match.group(0) == '$$':
                return '$$'
            var_name = match.group(1) or match.group(4)
            modifier = match.group(2)
            alt_value = match.group(3) or ''

            value = lookup(var_name)
            if value is None and keep_unresolved:
                return match.group(0)

            if modifier == '-':
                # ${VAR:-default}: default when unset or empty
                return _escaped(value) if value else alt_value
            if modifier == '+':
                # ${VAR:+value}: value when set and not empty
                return alt_value if value else ''
            if value is None:
                if missing is not None:
                    missing.add(var_name)
                return ''
            return _escaped(value)

        def _escaped(value: str) -> str:
            return value.replace('$', '$$') if escape_values else value

        if '$' not in template:
            return template
        return EnvironmentInterpolator.PATTERN.sub(replace, template)

    @staticmethod
    def references(template: str) -> List[str]:
        """
        Lists the variable names referenced by a string, in order of appearance.
        """
        names = []
        for match in EnvironmentInterpolator.PATTERN.finditer(template):
            name = match.group(1) or match.group(4)
            if name and name not in names:
                names.append(name)
        return names

    @staticmethod
    def is_reference(value: str) -> bool:
        """
        Checks whether the whole value is a single ${VAR} or $VAR reference.
        """
        match = EnvironmentInterpolator.PATTERN.fullmatch(value)
        return bool(match) and match.group(0) != '$$'
