class PipelineError(Exception):
    """Base class for errors that should stop a pipeline stage"""

class MissingInputError(PipelineError):
    """A stage's required input file does not exist"""

class DatasetError(PipelineError):
    """The canonical dataset is unreadable or not a JSON array of venues"""
