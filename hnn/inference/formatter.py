"""Human-readable results for the add/sub model contract.

The served model returns the element-wise sum in ``OUTPUT0`` and the
element-wise difference in ``OUTPUT1``; results are reported interleaved, sum
then difference, for each index.
"""

from typing import List, Sequence

from .errors import LengthMismatchError


def format_results(
    inputs0: Sequence[int],
    inputs1: Sequence[int],
    outputs0: Sequence[int],
    outputs1: Sequence[int],
) -> List[str]:
    """Pair inputs with outputs positionally.

    >>> format_results([5, 10], [3, 7], [8, 17], [2, 3])
    ['5 + 3 = 8', '5 - 3 = 2', '10 + 7 = 17', '10 - 7 = 3']
    """
    lengths = {len(inputs0), len(inputs1), len(outputs0), len(outputs1)}
    if len(lengths) != 1:
        raise LengthMismatchError(
            "format",
            "sequence lengths differ: "
            f"input0={len(inputs0)} input1={len(inputs1)} "
            f"output0={len(outputs0)} output1={len(outputs1)}",
        )

    results = []
    for a, b, total, difference in zip(inputs0, inputs1, outputs0, outputs1):
        results.append(f"{a} + {b} = {total}")
        results.append(f"{a} - {b} = {difference}")
    return results
