"""Default enrichment step registry, run in order."""

from wiki_resolver.pipeline.step import EnrichmentStep
from wiki_resolver.pipeline.steps.content import load_full_content, wants_full_content
from wiki_resolver.pipeline.steps.metadata import fetch_categories_and_coordinates
from wiki_resolver.pipeline.steps.related import fetch_related_stubs, is_confident_match

DEFAULT_STEPS = [
    EnrichmentStep(name="metadata", fn=fetch_categories_and_coordinates),
    EnrichmentStep(name="content", fn=load_full_content, when=wants_full_content),
    EnrichmentStep(name="related", fn=fetch_related_stubs, when=is_confident_match),
]
