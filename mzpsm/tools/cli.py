import sys
import click
import logging

from pyteomics import fasta

from mzpsm.exceptions import MzPsmError
from mzpsm.modifications import default_modifications, load_modifications
from mzpsm.peptide import Protein
from mzpsm.psm import OmssaCsvPsmReader
from mzpsm.spectral import SpectralFileBase, guess_implementation

from mzpsm.tools.utils import ColoringFormatter, parse_fixed_modification

CONTEXT_SETTINGS = dict(help_option_names=['-h', '--help'])

logger = logging.getLogger(__name__)


def _format_choices():
    return sorted(k for k in SpectralFileBase._file_extension_to_implementation if not k.startswith("."))


def _open_spectral_file(path, file_format=None) -> SpectralFileBase:
    if file_format is not None:
        return SpectralFileBase.type_for_format(file_format)(path)
    try:
        return guess_implementation(path)
    except ValueError as err:
        raise click.ClickException(str(err)) from err


@click.group(context_settings=CONTEXT_SETTINGS)
@click.option("-v", "--verbose", is_flag=True, help="Log debugging messages")
def main(verbose=False):
    """Inspect mass spectrometry data files and read search engine results."""
    format_string = '[%(asctime)s] %(levelname).1s | %(name)s | %(message)s'

    logging.basicConfig(
        level='DEBUG' if verbose else 'INFO',
        stream=sys.stderr,
        format=format_string,
        datefmt="%H:%M:%S")

    fmtr = ColoringFormatter(format_string, datefmt='%H:%M:%S')

    for handler in logging.getLogger().handlers:
        handler.setFormatter(
            fmtr
        )


@main.command("describe", short_help="Produce a minimal textual description of a spectral file")
@click.argument('path', type=click.Path(exists=True))
@click.option("-f", "--format", "file_format", type=click.Choice(_format_choices()),
              help='The format of the spectral file. If omitted, will attempt to infer it from the name.')
def describe(path, file_format=None):
    """Produce a minimal textual description of a spectral file."""
    click.echo("Describing \"%s\"" % (path,))
    spectral_file = _open_spectral_file(path, file_format)
    try:
        with spectral_file:
            click.echo(f"Format: {spectral_file.format_name}")
            click.echo(f"Name: {spectral_file.name}")
            click.echo(f"First Spectrum: {spectral_file.first_spectrum_number}")
            click.echo(f"Last Spectrum: {spectral_file.last_spectrum_number}")
            click.echo(f"Spectrum Count: {len(spectral_file)}")
            for ms_order, count in sorted(spectral_file.get_ms_order_counts().items()):
                click.echo(f"MS{ms_order} Spectra: {count}")
    except MzPsmError as err:
        raise click.ClickException(str(err)) from err


def _load_proteins(path):
    for description, sequence in fasta.read(path):
        accession = description.split(None, 1)[0] if description else description
        yield Protein(accession, description, sequence)


@main.command("read-psms", short_help="Read the peptide-spectrum matches from a search result file")
@click.argument("results", type=click.Path(exists=True))
@click.option("-d", "--data-file", "data_files", type=click.Path(exists=True), multiple=True,
              help="A spectral file the searched spectra came from. May be repeated.")
@click.option("-x", "--fixed-mod", "fixed_modifications", multiple=True,
              help=("A fixed modification, as NAME:RESIDUES, e.g. \"carbamidomethyl C:C\". "
                    "May be repeated."))
@click.option("-m", "--mods-xml", type=click.Path(exists=True),
              help="An OMSSA usermods.xml file with additional modification definitions")
@click.option("-e", "--extra-column", "extra_columns", multiple=True,
              help="A result column to carry along with each PSM. May be repeated.")
@click.option("-p", "--protein", "protein_fasta", type=click.Path(exists=True),
              help="A FASTA file of the searched proteins, used to link peptides to their parent protein")
def read_psms(results, data_files=(), fixed_modifications=(), mods_xml=None, extra_columns=(),
              protein_fasta=None):
    """
    Read the OMSSA CSV file `results` and write one tab-separated line per
    peptide-spectrum match to STDOUT.
    """
    modifications = default_modifications()
    user_modifications = load_modifications(mods_xml) if mods_xml else None

    try:
        reader = OmssaCsvPsmReader(
            results, modifications=modifications, user_modifications=user_modifications,
            extra_columns=extra_columns)
    except (IOError, ValueError) as err:
        raise click.ClickException(f"Could not open {results}: {err}") from err

    for value in fixed_modifications:
        name, residues = parse_fixed_modification(value)
        modification = reader.resolve_modification(name)
        if residues is None and not modification.residues:
            reader.close()
            raise click.BadParameter(f"No residues known for {name!r}", param_hint="--fixed-mod")
        reader.add_fixed_modification(modification, residues)

    for path in data_files:
        reader.add_spectral_file(_open_spectral_file(path))

    if protein_fasta:
        reader.add_proteins(_load_proteins(protein_fasta))
        logger.info(f"Loaded {len(reader.proteins)} proteins")

    header = ["filename", "spectrum_number", "sequence", "proforma", "charge", "e_value", "is_decoy",
              "retention_time"]
    header.extend(extra_columns)
    click.echo('\t'.join(header))
    n = 0
    try:
        with reader:
            for psm in reader:
                retention_time = psm.retention_time
                fields = [
                    psm.filename,
                    str(psm.spectrum_number),
                    psm.peptide.sequence,
                    psm.peptide.to_proforma(),
                    str(psm.charge),
                    str(psm.score),
                    "1" if psm.is_decoy else "0",
                    "" if retention_time is None else f"{retention_time:0.4f}",
                ]
                fields.extend(psm.extra_data[name] for name in extra_columns)
                click.echo('\t'.join(fields))
                n += 1
    except (MzPsmError, ValueError) as err:
        raise click.ClickException(str(err)) from err
    finally:
        reader.spectral_files.close()
    logger.info(f"Read {n} PSMs from {results}")


if __name__ == "__main__":
    main()
