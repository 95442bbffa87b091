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
Reverse-proxy routing labels for services that look like web servers.
"""
import logging
import re
from typing import Dict, NamedTuple, Optional
from ..MODELS.compose_document import ComposeDocument, ComposeService
from ..UTILS.field_shapes import env_to_dict, labels_from_canonical, labels_to_canonical
from ..UTILS.port_finder import container_port, extract_port_number
from .base_pass import EnrichmentPass

logger = logging.getLogger(__name__)

COMMON_HTTP_PORTS = (80, 443, 8000, 8080, 8081, 3000, 3001, 5000, 5001, 8443)
HTTPS_PORTS = (443, 8443)

_NUMBER = re.compile(r'\d+')


class HttpEndpoint(NamedTuple):
    port: int
    scheme: str


def _endpoint(port: int) -> HttpEndpoint:
    return HttpEndpoint(port, "https" if port in HTTPS_PORTS else "http")


def detect_http_port(service: ComposeService) -> Optional[HttpEndpoint]:
    """
    Guesses the port a service serves HTTP(S) on. First match wins:

    1. a label whose key mentions "port" and whose value contains a common
       web port as a whole number;
    2. the container side of the first port mapping, whatever its value;
    3. an environment variable whose key mentions "PORT" and whose value
       is a positive port number.

    :param service: The service to look at.
    :return: The endpoint, or None when there is no evidence.
    """
    for key, value in labels_to_canonical(service.labels).items():
        if 'port' not in key.lower():
            continue
        for token in _NUMBER.findall(value):
            if int(token) in COMMON_HTTP_PORTS:
                return _endpoint(int(token))

    if service.ports:
        port = container_port(service.ports[0])
        if port > 0:
            return _endpoint(port)

    for key, value in env_to_dict(service.environment).items():
        if 'PORT' in key.upper() and value:
            port = extract_port_number(value)
            if port > 0:
                return _endpoint(port)

    return None


def proxy_labels(service_name: str, endpoint: HttpEndpoint) -> Dict[str, str]:
    return {
        f"traefik.http.routers.{service_name}.rule": f"Host(`{service_name}`)",
        f"traefik.http.services.{service_name}.loadbalancer.server.port": str(endpoint.port),
        f"traefik.http.routers.{service_name}.entrypoints": endpoint.scheme,
    }


class ProxyLabelPass(EnrichmentPass):
    """
    Adds routing rule, backend port and entry point labels to every
    service with a detectable HTTP port.
    """
    name = "proxy-labels"

    def transform(self, document: ComposeDocument) -> None:
        for service_name, service in document.services.items():
            endpoint = detect_http_port(service)
            if endpoint is None:
                continue

            labels = labels_to_canonical(service.labels)
            wanted = proxy_labels(service_name, endpoint)
            if all(labels.get(key) == value for key, value in wanted.items()):
                continue
            labels.update(wanted)
            service.labels = labels_from_canonical(labels, service.labels)
            logger.debug("Routing %s to port %d over %s", service_name, endpoint.port, endpoint.scheme)
