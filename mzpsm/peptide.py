import math

from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from pyteomics import mass, proforma


class Modification(object):
    """A chemical modification with its mass deltas.

    Attributes
    ----------
    name : str
        The name used by the search engine for this modification
    monoisotopic_mass : float
    average_mass : float
    residues : tuple of str
        The residues this modification may be placed on, if known.
    """

    __slots__ = ('name', 'monoisotopic_mass', 'average_mass', 'residues')

    def __init__(self, name: str, monoisotopic_mass: float=math.nan, average_mass: float=math.nan,
                 residues: Iterable[str]=()):
        self.name = name
        self.monoisotopic_mass = float(monoisotopic_mass)
        self.average_mass = float(average_mass)
        self.residues = tuple(residues)

    @property
    def is_resolved(self) -> bool:
        return not math.isnan(self.monoisotopic_mass)

    def __eq__(self, other):
        if not isinstance(other, Modification):
            return False
        return self.name == other.name

    def __ne__(self, other):
        return not self == other

    def __hash__(self):
        return hash(self.name)

    def __repr__(self):
        return f"{self.__class__.__name__}({self.name!r}, {self.monoisotopic_mass}, {self.average_mass})"


class FixedModification(object):
    """A modification applied to every occurrence of a set of residues."""

    __slots__ = ('modification', 'residues')

    def __init__(self, modification: Modification, residues: Optional[Iterable[str]]=None):
        if residues is None:
            residues = modification.residues
        self.modification = modification
        self.residues = frozenset(r.upper() for r in residues)

    def apply(self, peptide: 'Peptide') -> 'Peptide':
        for position, residue in enumerate(peptide.sequence, 1):
            if residue in self.residues:
                peptide.set_modification(self.modification, position)
        return peptide

    def __repr__(self):
        return f"{self.__class__.__name__}({self.modification!r}, {sorted(self.residues)})"


class Protein(object):
    __slots__ = ('accession', 'description', 'sequence')

    def __init__(self, accession: str, description: Optional[str]=None, sequence: Optional[str]=None):
        self.accession = accession
        self.description = description
        self.sequence = sequence

    @property
    def defline(self) -> str:
        if self.description:
            return self.description
        return self.accession

    def __eq__(self, other):
        if not isinstance(other, Protein):
            return False
        return self.accession == other.accession and self.description == other.description

    def __ne__(self, other):
        return not self == other

    def __hash__(self):
        return hash(self.accession)

    def __repr__(self):
        return f"{self.__class__.__name__}({self.accession!r}, {self.description!r})"


class Peptide(object):
    """An amino acid sequence with positional modifications.

    Positions are 1-based residue numbers. A residue may carry more than one
    modification, but the same modification is only ever recorded once per
    position, so re-applying a rule does not change the peptide.

    Attributes
    ----------
    sequence : str
        The upper-case amino acid sequence
    start_residue : int
        The position of the first residue in the parent protein
    end_residue : int
        The position of the last residue in the parent protein
    parent : :class:`Protein`, optional
        The protein this peptide was matched to, if known
    """

    __slots__ = ('sequence', 'start_residue', 'end_residue', 'parent', '_modifications')

    sequence: str
    _modifications: Dict[int, List[Modification]]

    def __init__(self, sequence: str, start_residue: Optional[int]=None, end_residue: Optional[int]=None,
                 parent: Optional[Protein]=None):
        self.sequence = sequence.upper()
        self.start_residue = start_residue
        self.end_residue = end_residue
        self.parent = parent
        self._modifications = {}

    def __len__(self):
        return len(self.sequence)

    def _check_position(self, position: int):
        if not 1 <= position <= len(self.sequence):
            raise IndexError(
                f"Position {position} is outside of the peptide {self.sequence} (1-{len(self.sequence)})")

    def set_modification(self, modification: Modification, position: int):
        self._check_position(position)
        mods = self._modifications.setdefault(position, [])
        if modification not in mods:
            mods.append(modification)

    def get_modifications(self, position: int) -> List[Modification]:
        return list(self._modifications.get(position, ()))

    def clear_modifications(self):
        self._modifications.clear()

    @property
    def modifications(self) -> List[Tuple[int, Modification]]:
        """Every ``(position, modification)`` pair, ordered by position"""
        return [(position, mod) for position in sorted(self._modifications)
                for mod in self._modifications[position]]

    @property
    def modification_count(self) -> int:
        return sum(map(len, self._modifications.values()))

    def __iter__(self) -> Iterator[Tuple[str, List[Modification]]]:
        for position, residue in enumerate(self.sequence, 1):
            yield residue, self.get_modifications(position)

    @property
    def unmodified_mass(self) -> float:
        return mass.fast_mass(self.sequence)

    @property
    def monoisotopic_mass(self) -> float:
        """The neutral monoisotopic mass including modification deltas. NaN if any
        modification's mass is unknown.
        """
        return self.unmodified_mass + sum(mod.monoisotopic_mass for _, mod in self.modifications)

    def to_proforma(self) -> str:
        """Render the peptide as a ProForma string, writing modifications as
        mass deltas (or by name when the mass is unknown).
        """
        tokens = []
        for residue, mods in self:
            tokens.append(residue)
            for mod in mods:
                if mod.is_resolved:
                    tokens.append(f"[{mod.monoisotopic_mass:+.6f}]")
                else:
                    tokens.append(f"[{mod.name}]")
        return ''.join(tokens)

    def to_proforma_object(self) -> proforma.ProForma:
        return proforma.ProForma.parse(self.to_proforma())

    def __eq__(self, other):
        if not isinstance(other, Peptide):
            return False
        return self.sequence == other.sequence and self.modifications == other.modifications

    def __ne__(self, other):
        return not self == other

    def __hash__(self):
        return hash(self.sequence)

    def __str__(self):
        return self.to_proforma()

    def __repr__(self):
        return f"{self.__class__.__name__}({self.to_proforma()!r})"
