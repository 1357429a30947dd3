"""babelcore: orquestación de proyectos de traducción por chunks."""

__version__ = "0.1.0"
