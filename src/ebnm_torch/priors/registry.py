from .base import PriorFamily
from .mixture import NormalMixFamily
from .point import PointNormalFamily


class PriorRegistry:
    """
    Registry for prior families, allowing registration and lookup by name.

    Attributes
    ----------
    registry : dict[str, PriorFamily]
        Mapping from family name to family instance.
    """

    def __init__(self) -> None:
        self.registry: dict[str, PriorFamily] = {}

    def register(self, name: str, family: PriorFamily) -> None:
        """
        Register a prior family under a given name.

        Parameters
        ----------
        name : str
            Name of the family.
        family : PriorFamily
            Family instance to register.
        """
        self.registry[name] = family

    def get_builder(self, name: str) -> PriorFamily:
        """
        Retrieve a registered prior family by name.

        Parameters
        ----------
        name : str
            Name of the family.

        Returns
        -------
        PriorFamily
            The registered family instance.

        Raises
        ------
        ValueError
            If the family is not registered.
        """
        if name not in self.registry:
            raise ValueError(f"Prior family '{name}' is not registered. Available: {self.list_priors()}")
        return self.registry[name]

    def list_priors(self) -> list[str]:
        """
        List all registered family names.

        Returns
        -------
        list of str
            Names of all registered families.
        """
        return list(self.registry.keys())


PRIOR_REGISTRY = PriorRegistry()

for family in (PointNormalFamily(), NormalMixFamily()):
    PRIOR_REGISTRY.register(family.name, family)
