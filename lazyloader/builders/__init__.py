"""Proxy builder strategies."""

from typing import Dict, Type

from lazyloader.analysis.classifier import TargetClassification
from lazyloader.builders.base import BaseLazyProxyBuilder
from lazyloader.builders.class_proxy import ClassLazyProxyBuilder
from lazyloader.builders.fallback_proxy import FallbackLazyProxyBuilder
from lazyloader.builders.interface_proxy import InterfaceLazyProxyBuilder
from lazyloader.naming import DEFAULT_PROXY_NAMESPACE

BUILDERS: Dict[TargetClassification, Type[BaseLazyProxyBuilder]] = {
    TargetClassification.FINAL: FallbackLazyProxyBuilder,
    TargetClassification.INTERNAL_INTERFACE: FallbackLazyProxyBuilder,
    TargetClassification.NESTED_INTERFACE: FallbackLazyProxyBuilder,
    TargetClassification.NESTED_ABSTRACT: FallbackLazyProxyBuilder,
    TargetClassification.PLAIN_INTERFACE: InterfaceLazyProxyBuilder,
    TargetClassification.PLAIN_CLASS: ClassLazyProxyBuilder,
}


def select_builder(
    classification: TargetClassification,
    namespace: str = DEFAULT_PROXY_NAMESPACE,
) -> BaseLazyProxyBuilder:
    return BUILDERS[classification](namespace=namespace)


__all__ = [
    "BUILDERS",
    "BaseLazyProxyBuilder",
    "ClassLazyProxyBuilder",
    "FallbackLazyProxyBuilder",
    "InterfaceLazyProxyBuilder",
    "select_builder",
]
