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
Utilities for reading port numbers out of compose port mappings, labels,
environment values and config contents.
"""
import re
from typing import Any, Dict, List, Optional, Tuple

PRIVILEGED_PORT_LIMIT = 1024
CONFIG_PORT_KEYS = ("port", "listen_port", "bind_port", "server_port", "http_port", "https_port")

_LEADING_NUMBER = re.compile(r'\s*(\d+)')


def extract_port_number(text: str) -> int:
    """
    Extracts a port number from "80", "0.0.0.0:80", "127.0.0.1:80:80",
    "80/tcp" and similar forms. The last colon-separated part is used.

    :param text: The port text.
    :return: The port, or 0 if none could be read.
    """
    text = str(text).split('/')[0]
    last = text.split(':')[-1]
    match = _LEADING_NUMBER.match(last)
    return int(match.group(1)) if match else 0


def split_port_mapping(mapping: Any) -> Tuple[Optional[str], Optional[str], str, str]:
    """
    Splits a port mapping into (host_ip, host_port, container_port, protocol).

    Handles the short syntax "[ip:][host:]container[/proto]" and the long
    syntax mapping with target/published/host_ip/protocol keys. Port ranges
    are returned as written.
    """
    if isinstance(mapping, dict):
        published = mapping.get('published')
        return (
            mapping.get('host_ip'),
            str(published) if published is not None else None,
            str(mapping.get('target', '')),
            str(mapping.get('protocol') or 'tcp'),
        )

    text = str(mapping)
    text, _, protocol = text.partition('/')
    protocol = protocol or 'tcp'

    # IPv6 host addresses are written in brackets: [::1]:8080:80
    host_ip = None
    if text.startswith('['):
        end = text.find(']')
        host_ip = text[1:end]
        text = text[end + 2:]

    parts = text.split(':')
    if len(parts) >= 3:
        host_ip = ':'.join(parts[:-2])
        return host_ip, parts[-2] or None, parts[-1], protocol
    if len(parts) == 2:
        return host_ip, parts[0] or None, parts[1], protocol
    return host_ip, None, parts[0], protocol


def container_port(mapping: Any) -> int:
    """
    Returns the container-side port of a mapping; the first port of a range.
    """
    target = split_port_mapping(mapping)[2]
    return extract_port_number(target.split('-')[0])


def lowest_privileged_port(ports: List[Any],
                           environment: Dict[str, Optional[str]],
                           labels: Dict[str, str],
                           config_contents: List[str]) -> int:
    """
    Finds the lowest port below 1024 a service uses, looking at both sides
    of its port mappings, PORT environment variables, port labels and
    port-like keys in the contents of the configs it references.

    Diagnostic only; nothing in the enrichment pipeline depends on it.

    :return: The lowest privileged port, or 0 if there is none.
    """
    candidates = []
    for mapping in ports:
        _, host, target, _ = split_port_mapping(mapping)
        for part in (host, target):
            if part:
                candidates.append(extract_port_number(part.split('-')[0]))

    for key, value in environment.items():
        if 'PORT' in key.upper() and value:
            candidates.append(extract_port_number(value))

    for key, value in labels.items():
        if 'port' in key.lower():
            candidates.append(extract_port_number(value))

    for content in config_contents:
        candidates.extend(_config_ports(content))

    privileged = [port for port in candidates if 0 < port < PRIVILEGED_PORT_LIMIT]
    return min(privileged) if privileged else 0


def _config_ports(content: str) -> List[int]:
    # Matches `port: 80`, `"http_port": 80,` and the like in YAML or JSON
    ports = []
    for line in content.splitlines():
        parts = line.split(':')
        for index, part in enumerate(parts[:-1]):
            key = part.strip().strip('"\'{ ,').lower()
            if any(key.endswith(port_key) for port_key in CONFIG_PORT_KEYS):
                value = parts[index + 1].strip().strip(' ,}"\'')
                ports.append(extract_port_number(value))
    return ports
