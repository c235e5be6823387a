"""Hydra metadata discovery — build a CapabilityDescriptor from a data object's JSON-LD.

The data object's ``ld`` payload is parsed with rdflib's JSON-LD parser and
read for the object's own identifier:

- ``covapi:api`` typed ``hydra:IriTemplate``: ``hydra:template`` plus
  ``hydra:mapping`` entries pairing ``hydra:variable`` with ``hydra:property``.
- ``hydra:view`` typed ``hydra:PartialCollectionView``: paging links, with
  ``hydra:totalItems`` on the collection.
- ``covapi:canInclude``: the server honours ``Prefer: include=...``.

Well-known remote contexts are swapped for bundled partial copies before
parsing so discovery never fetches them. Hydra data in non-default graphs
is not supported.

INVARIANT: Discovery never fails. Absent identifiers or malformed metadata
yield a descriptor with no capabilities.
"""

from __future__ import annotations

import copy
import json
import logging
from collections.abc import Mapping
from typing import Any

from rdflib import RDF, Graph, Literal, Namespace, URIRef
from rdflib.term import Node

from covrest.domain.capabilities import (
    COVAPI_NS,
    CapabilityDescriptor,
    PagingInfo,
    UrlProperty,
)

logger = logging.getLogger(__name__)

HYDRA = Namespace("http://www.w3.org/ns/hydra/core#")
COVAPI = Namespace(COVAPI_NS)

# Partial copy of the Hydra core context plus the covapi terms.
HYDRA_CONTEXT: dict[str, Any] = {
    "hydra": str(HYDRA),
    "covapi": COVAPI_NS,
    "id": "@id",
    "type": "@type",
    "api": {"@id": "covapi:api", "@type": "@id"},
    "canInclude": {"@id": "covapi:canInclude", "@type": "@id"},
    "property": {"@id": "hydra:property", "@type": "@id"},
    "required": "hydra:required",
    "view": {"@id": "hydra:view", "@type": "@id"},
    "PartialCollectionView": "hydra:PartialCollectionView",
    "totalItems": "hydra:totalItems",
    "first": {"@id": "hydra:first", "@type": "@id"},
    "last": {"@id": "hydra:last", "@type": "@id"},
    "next": {"@id": "hydra:next", "@type": "@id"},
    "previous": {"@id": "hydra:previous", "@type": "@id"},
    "IriTemplate": "hydra:IriTemplate",
    "template": "hydra:template",
    "mapping": "hydra:mapping",
    "IriTemplateMapping": "hydra:IriTemplateMapping",
    "variable": "hydra:variable",
}

COVJSON_BASE_CONTEXT: dict[str, Any] = {"id": "@id", "type": "@type"}

KNOWN_CONTEXTS: dict[str, dict[str, Any]] = {
    "http://www.w3.org/ns/hydra/core": HYDRA_CONTEXT,
    "http://www.w3.org/ns/hydra/context.jsonld": HYDRA_CONTEXT,
    "https://covjson.org/context.jsonld": COVJSON_BASE_CONTEXT,
    "https://rawgit.com/reading-escience-centre/coveragejson/master/contexts/coveragejson-base.jsonld": (
        COVJSON_BASE_CONTEXT
    ),
}


def inline_contexts(ld: Mapping[str, Any]) -> dict[str, Any]:
    """Return a copy of *ld* whose known remote contexts are inlined.

    The Hydra context is always prepended so that ``id``/``type`` aliases
    and the Hydra terms resolve even when the payload omits them; terms the
    payload defines itself take precedence.
    """
    doc = copy.deepcopy(dict(ld))
    raw = doc.get("@context", [])
    entries = raw if isinstance(raw, list) else [raw]
    resolved = [KNOWN_CONTEXTS.get(e, e) if isinstance(e, str) else e for e in entries]
    doc["@context"] = [HYDRA_CONTEXT, *resolved]
    return doc


def _value(graph: Graph, subject: Node | None, predicate: URIRef) -> Node | None:
    if subject is None:
        return None
    return graph.value(subject, predicate)


def _link(graph: Graph, subject: Node | None, predicate: URIRef) -> str | None:
    node = _value(graph, subject, predicate)
    return str(node) if node is not None else None


def _read_paging(graph: Graph, subject: URIRef) -> PagingInfo | None:
    view = graph.value(subject, HYDRA.view)
    if view is None or (view, RDF.type, HYDRA.PartialCollectionView) not in graph:
        return None
    total_node = graph.value(subject, HYDRA.totalItems)
    total = int(total_node.toPython()) if isinstance(total_node, Literal) else None
    return PagingInfo(
        total=total,
        first=_link(graph, view, HYDRA.first),
        previous=_link(graph, view, HYDRA.previous),
        next=_link(graph, view, HYDRA.next),
        last=_link(graph, view, HYDRA.last),
    )


def _read_template(graph: Graph, subject: URIRef) -> tuple[str | None, dict[UrlProperty, str]]:
    api = graph.value(subject, COVAPI.api)
    if api is None or (api, RDF.type, HYDRA.IriTemplate) not in graph:
        return None, {}
    template = _link(graph, api, HYDRA.template)
    known = {str(p) for p in UrlProperty}
    variables: dict[UrlProperty, str] = {}
    for mapping in graph.objects(api, HYDRA.mapping):
        prop = _link(graph, mapping, HYDRA.property)
        variable = _link(graph, mapping, HYDRA.variable)
        if prop in known and variable:
            logger.debug("URL property recognized: %s (variable: %s)", prop, variable)
            variables[UrlProperty(prop)] = variable
    return template, variables


def descriptor_from_ld(data_id: str, ld: Mapping[str, Any]) -> CapabilityDescriptor:
    """Parse *ld* and build the descriptor for the node *data_id*.

    Raises whatever rdflib raises on malformed input; :func:`discover`
    is the failure-tolerant entry point.
    """
    graph = Graph()
    graph.parse(data=json.dumps(inline_contexts(ld)), format="json-ld", base=data_id)
    subject = URIRef(data_id)
    template, variables = _read_template(graph, subject)
    return CapabilityDescriptor.from_url_template(
        template,
        variables,
        can_include=(subject, COVAPI.canInclude, None) in graph,
        paging=_read_paging(graph, subject),
        base_url=data_id,
    )


async def discover(data: Any) -> CapabilityDescriptor:
    """Discover the capabilities of a coverage or collection.

    Returns an empty descriptor when the object has no identifier or its
    metadata cannot be read.
    """
    data_id = getattr(data, "id", None)
    if not data_id:
        return CapabilityDescriptor()
    ld = getattr(data, "ld", None) or {}
    try:
        return descriptor_from_ld(data_id, ld)
    except Exception:
        logger.warning("Capability discovery failed for %s", data_id, exc_info=True)
        return CapabilityDescriptor(base_url=data_id)
