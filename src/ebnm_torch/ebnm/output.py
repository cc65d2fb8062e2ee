from collections.abc import Iterable
from enum import StrEnum, auto
from typing import Any


class Output(StrEnum):
    """
    Quantities an EBNM fit can return.

    Attributes
    ----------
    POSTERIOR : str
        Posterior summary (mean, second moment, sd) per observation.
    FITTED_G : str
        The fitted (or fixed) prior.
    LOG_LIKELIHOOD : str
        Marginal log-likelihood of the data under the prior.
    POSTERIOR_SAMPLER : str
        Callable drawing posterior samples.
    """

    POSTERIOR = auto()
    FITTED_G = auto()
    LOG_LIKELIHOOD = auto()
    POSTERIOR_SAMPLER = auto()


DEFAULT_OUTPUT = frozenset({Output.POSTERIOR, Output.FITTED_G, Output.LOG_LIKELIHOOD})

# names used by the R ebnm package
_ALIASES = {
    "result": Output.POSTERIOR,
    "summary_results": Output.POSTERIOR,
    "loglik": Output.LOG_LIKELIHOOD,
    "post_sampler": Output.POSTERIOR_SAMPLER,
}


def _parse_output(name: str | Output) -> Output:
    if name in _ALIASES:
        return _ALIASES[name]
    try:
        return Output(name)
    except ValueError:
        valid = [str(o) for o in Output]
        raise ValueError(f"Unknown output '{name}'. Available: {valid}") from None


def set_output(output: str | Output | Iterable[str | Output] | None = None) -> frozenset[Output]:
    """
    Normalize an output request to a set of :class:`Output` members.

    ``None`` selects the default (posterior summary, fitted prior and
    log-likelihood). An empty iterable is a valid request for nothing.
    """
    if output is None:
        return DEFAULT_OUTPUT
    if isinstance(output, str):
        output = [output]
    return frozenset(_parse_output(name) for name in output)


class EBNMResult(dict):
    """
    Mapping from :class:`Output` to the requested quantities.

    Only requested outputs are present. Keys are ``StrEnum`` members, so
    ``res["log_likelihood"]`` and ``res[Output.LOG_LIKELIHOOD]`` are equivalent.
    """

    def _get(self, key: Output) -> Any:
        if key not in self:
            raise KeyError(f"'{key}' was not requested; pass output=[..., '{key}']")
        return self[key]

    @property
    def posterior(self):
        return self._get(Output.POSTERIOR)

    @property
    def fitted_g(self):
        return self._get(Output.FITTED_G)

    @property
    def log_likelihood(self) -> float:
        return self._get(Output.LOG_LIKELIHOOD)

    @property
    def posterior_sampler(self):
        return self._get(Output.POSTERIOR_SAMPLER)
