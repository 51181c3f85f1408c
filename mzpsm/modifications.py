import os
import re
import logging
import functools

from collections import abc
from typing import Dict, Iterator, List, Optional, Tuple, Union

from lxml import etree

from mzpsm.exceptions import ModificationParseError
from mzpsm.peptide import Modification

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())


DEFAULT_MODIFICATIONS_PATH = os.path.join(os.path.dirname(__file__), "data", "mods.xml")

MODIFICATION_DELIMITERS = re.compile(r"[,;]")
POSITION_DELIMITER = ":"


class ModificationDictionary(abc.Mapping):
    """An immutable mapping from modification name to :class:`~.Modification`.

    Instances are meant to be built once and handed to every reader that needs
    them, rather than reloaded per reader.
    """

    __slots__ = ('_modifications', 'source')

    _modifications: Dict[str, Modification]
    source: Optional[str]

    def __init__(self, modifications: Union[Dict[str, Modification], List[Modification], None]=None,
                 source: Optional[str]=None):
        if modifications is None:
            modifications = {}
        elif not isinstance(modifications, abc.Mapping):
            modifications = {mod.name: mod for mod in modifications}
        self._modifications = dict(modifications)
        self.source = source

    def __getitem__(self, name: str) -> Modification:
        return self._modifications[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._modifications)

    def __len__(self):
        return len(self._modifications)

    def __repr__(self):
        return f"{self.__class__.__name__}(<{len(self)} modifications>, source={self.source!r})"

    @classmethod
    def from_xml(cls, path: Union[str, os.PathLike]) -> 'ModificationDictionary':
        """
        Parse an OMSSA ``mods.xml`` or ``usermods.xml`` document.

        Parameters
        ----------
        path : str
            The path to the XML document

        Returns
        -------
        :class:`ModificationDictionary`
        """
        path = os.fspath(path)
        tree = etree.parse(path)
        root = tree.getroot()
        namespace = root.nsmap.get(None)
        ns = {"omssa": namespace} if namespace else {}
        prefix = "omssa:" if namespace else ""

        modifications = {}
        for node in root.iterfind(f"{prefix}MSModSpec", ns):
            name = node.findtext(f"{prefix}MSModSpec_name", namespaces=ns)
            if name is None:
                continue
            name = name.strip()
            monoisotopic_mass = float(node.findtext(f"{prefix}MSModSpec_monomass", namespaces=ns))
            average_mass = float(node.findtext(f"{prefix}MSModSpec_averagemass", namespaces=ns))
            residues = [
                residue.text.strip() for residue in
                node.iterfind(f"{prefix}MSModSpec_residues/{prefix}MSModSpec_residues_E", ns)
                if residue.text
            ]
            modifications[name] = Modification(name, monoisotopic_mass, average_mass, residues)
        logger.debug("Loaded %d modifications from %s", len(modifications), path)
        return cls(modifications, source=path)


@functools.lru_cache(maxsize=None)
def _load_modifications_cached(path: str) -> ModificationDictionary:
    return ModificationDictionary.from_xml(path)


def load_modifications(path: Union[str, os.PathLike]) -> ModificationDictionary:
    """
    Load a modification dictionary, reusing the already parsed instance if this
    document has been loaded before in this process.

    Parameters
    ----------
    path : str
        The path to an OMSSA modification XML document

    Returns
    -------
    :class:`ModificationDictionary`
    """
    return _load_modifications_cached(os.path.abspath(os.fspath(path)))


def default_modifications() -> ModificationDictionary:
    """The modification dictionary bundled with this package"""
    return load_modifications(DEFAULT_MODIFICATIONS_PATH)


def parse_variable_modifications(modifications: Optional[str]) -> List[Tuple[str, int]]:
    """
    Split a search engine's modification column into ``(name, position)`` pairs.

    Tokens are separated by ``,`` or ``;`` and have the form ``name:position``
    with a 1-based residue position, e.g. ``"Oxidation:3;Phospho:7"``.

    Parameters
    ----------
    modifications : str
        The raw modification string. Empty or :const:`None` yields nothing.

    Returns
    -------
    List[Tuple[str, int]]

    Raises
    ------
    ModificationParseError:
        If a token has no position or the position is not an integer.
    """
    if not modifications:
        return []
    result = []
    for token in MODIFICATION_DELIMITERS.split(modifications):
        token = token.strip()
        if not token:
            continue
        if POSITION_DELIMITER not in token:
            raise ModificationParseError(token, f"The modification {token!r} has no residue position")
        name, position = token.rsplit(POSITION_DELIMITER, 1)
        try:
            position = int(position.strip())
        except ValueError as err:
            raise ModificationParseError(token) from err
        result.append((name.strip(), position))
    return result
