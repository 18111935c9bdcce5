"""Proxy source generation pipeline."""

from __future__ import annotations

import logging

from lazyloader.analysis.classifier import classify
from lazyloader.analysis.declaration import load_declaration
from lazyloader.builders import select_builder
from lazyloader.naming import DEFAULT_PROXY_NAMESPACE

logger = logging.getLogger(__name__)


class ProxyGenerator:
    """Turn an identifier/target pair into proxy module source."""

    def __init__(self, namespace: str = DEFAULT_PROXY_NAMESPACE) -> None:
        self.namespace = namespace

    def generate(self, identifier: str, target: str) -> str:
        declaration = load_declaration(target)
        classification = classify(declaration)
        builder = select_builder(classification, namespace=self.namespace)
        if classification.is_unsupported:
            logger.debug(
                "Target %s classified as %s; using %s",
                target,
                classification.value,
                type(builder).__name__,
            )
        signatures = declaration.proxy_operations()
        logger.debug("Extracted %d public operations from %s", len(signatures), target)
        return builder.build(identifier, target, signatures)
