import click

from mzpsm import OmssaCsvPsmReader
from mzpsm.spectral import guess_implementation


@click.command('first_n_psms')
@click.argument('inpath', type=click.Path(exists=True))
@click.option("-d", "--data-file", "data_files", type=click.Path(exists=True), multiple=True)
@click.option("-n", '--psms-to-read', type=int, default=20)
def main(inpath, data_files, psms_to_read: int=20):
    click.echo(f"Opening {inpath}", err=True)
    with OmssaCsvPsmReader(inpath) as reader:
        for path in data_files:
            reader.add_spectral_file(guess_implementation(path))

        for i, psm in enumerate(reader, 1):
            if i > psms_to_read:
                break
            spectrum = psm.spectrum
            if spectrum is None:
                click.echo(f"{psm.peptide}\t{psm.score}\t<no spectrum>")
            else:
                click.echo(f"{psm.peptide}\t{psm.score}\t{spectrum.retention_time:0.3f}\t"
                           f"{len(spectrum.mz_spectrum)} peaks")
        reader.spectral_files.close()


if __name__ == "__main__":
    main.main()
