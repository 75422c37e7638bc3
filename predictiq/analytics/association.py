"""
Market Basket Analysis

Reconstructs shopping baskets as the set of products sold on the same date,
in the same store, to the same customer segment, then mines one-to-one
association rules.

Candidate generation is exhaustive over pairs of frequent items, so work grows
with the square of the number of frequent products. Larger itemsets are not
mined.
"""

from collections import Counter, defaultdict
from itertools import combinations
from typing import Dict, FrozenSet, List, Sequence, Tuple

import structlog

from predictiq.errors import ConfigurationError
from predictiq.models import AssociationRule, FrequentItemset, TransactionRecord

logger = structlog.get_logger(__name__)


def build_baskets(records: Sequence[TransactionRecord]) -> List[FrozenSet[str]]:
    """One product set per (date, store, customer segment) key"""
    baskets: Dict[tuple, set] = defaultdict(set)
    for record in records:
        baskets[(record.date, record.store or "", record.customer_segment_key)].add(record.product)
    return [frozenset(items) for _, items in sorted(baskets.items(), key=lambda kv: str(kv[0]))]


class MarketBasketAnalyzer:
    """
    Pairwise association-rule miner.

    Example:
        analyzer = MarketBasketAnalyzer(min_support=0.05, min_confidence=0.3)
        itemsets, rules = analyzer.analyze(records)
    """

    def __init__(self, min_support: float = 0.05, min_confidence: float = 0.3):
        if not 0 < min_support <= 1:
            raise ConfigurationError("minSupport must be in the range (0, 1].")
        if not 0 < min_confidence <= 1:
            raise ConfigurationError("minConfidence must be in the range (0, 1].")
        self.min_support = min_support
        self.min_confidence = min_confidence

    def frequent_itemsets(self, baskets: Sequence[FrozenSet[str]]) -> List[FrequentItemset]:
        """Single items and pairs whose support reaches ``min_support``"""
        total = len(baskets)
        if total == 0:
            return []

        item_counts = Counter(item for basket in baskets for item in basket)
        frequent_items = sorted(
            item for item, count in item_counts.items()
            if count / total >= self.min_support
        )

        itemsets = [
            FrequentItemset(items=(item,), support=item_counts[item] / total)
            for item in frequent_items
        ]

        for pair in combinations(frequent_items, 2):
            count = sum(1 for basket in baskets if pair[0] in basket and pair[1] in basket)
            support = count / total
            if support >= self.min_support:
                itemsets.append(FrequentItemset(items=pair, support=support))

        return itemsets

    def rules(self, itemsets: Sequence[FrequentItemset]) -> List[AssociationRule]:
        """Both directions of every frequent pair that reach ``min_confidence``"""
        item_support = {s.items[0]: s.support for s in itemsets if len(s.items) == 1}

        rules = []
        for itemset in itemsets:
            if len(itemset.items) != 2:
                continue
            first, second = itemset.items
            for antecedent, consequent in ((first, second), (second, first)):
                confidence = itemset.support / item_support[antecedent]
                if confidence >= self.min_confidence:
                    rules.append(AssociationRule(
                        antecedent=antecedent,
                        consequent=consequent,
                        support=itemset.support,
                        confidence=confidence,
                        lift=confidence / item_support[consequent],
                    ))

        rules.sort(key=lambda r: (-r.lift, -r.confidence, r.antecedent, r.consequent))
        return rules

    def analyze(
        self,
        records: Sequence[TransactionRecord],
    ) -> Tuple[List[FrequentItemset], List[AssociationRule]]:
        baskets = build_baskets(records)
        itemsets = self.frequent_itemsets(baskets)
        rules = self.rules(itemsets)

        logger.info(
            "Market basket analysis complete",
            baskets=len(baskets),
            frequent_itemsets=len(itemsets),
            rules=len(rules),
        )
        return itemsets, rules
