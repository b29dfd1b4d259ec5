"""Advisory quality checks on generated answers."""
import re
from typing import List


class OutputEvaluator:
    """Flags answers that deserve a second look. Never rejects anything."""

    # Language that signals the model is guessing rather than quoting context
    HEDGING_PHRASES = [
        "i think",
        "i believe",
        "probably",
        "might be",
        "could be",
        "in my opinion",
        "i assume",
        "i guess",
        "perhaps",
        "it seems like",
        "maybe",
        "i would say"
    ]

    REFUSAL_PHRASES = [
        "i don't have",
        "don't have enough information",
        "not mentioned",
        "cannot find",
        "no information",
        "not available in the provided context",
        "i cannot",
        "i can't",
        "unable to find",
        "contact spjimr directly"
    ]

    # A refusal that pivots to the details it does have is a partial answer
    PARTIAL_ANSWER_INDICATORS = [
        "but",
        "however",
        "although",
        "does mention",
        "instead"
    ]

    FEE_KEYWORDS = ["fee", "fees", "cost", "tuition", "lakh", "rs."]
    APPROXIMATION_PHRASES = ["approximately", "around", "roughly", "varies", "estimated"]

    def evaluate(self, response: str, documents_retrieved: int) -> List[str]:
        """
        Evaluate an answer and return flags.

        Args:
            response: Generated answer text
            documents_retrieved: Number of passages the answer could draw on

        Returns:
            Subset of hedging, refusal, no_context, fee_uncertainty
        """
        flags = []

        if self.has_hedging(response):
            flags.append("hedging")

        refusal = self.is_refusal(response)
        if refusal:
            flags.append("refusal")

        # Answered with nothing to ground it on
        if documents_retrieved == 0 and not refusal:
            flags.append("no_context")

        if self._has_fee_uncertainty(response):
            flags.append("fee_uncertainty")

        return flags

    def has_hedging(self, response: str) -> bool:
        response_lower = response.lower()
        return any(phrase in response_lower for phrase in self.HEDGING_PHRASES)

    def is_refusal(self, response: str) -> bool:
        """Whole-answer refusals only; long answers that pivot to partial facts are not refusals."""
        response_lower = response.lower()

        if not any(re.search(rf"\b{re.escape(phrase)}\b", response_lower) for phrase in self.REFUSAL_PHRASES):
            return False

        has_contrast = any(
            re.search(rf"\b{re.escape(indicator)}\b", response_lower)
            for indicator in self.PARTIAL_ANSWER_INDICATORS
        )
        return not (has_contrast and len(response.split()) > 12)

    def _has_fee_uncertainty(self, response: str) -> bool:
        response_lower = response.lower()
        if not any(keyword in response_lower for keyword in self.FEE_KEYWORDS):
            return False
        return any(phrase in response_lower for phrase in self.APPROXIMATION_PHRASES)
