class CFLPError(Exception):
    """Base class for errors raised by the facility location engine."""


class InvalidInput(CFLPError, ValueError):
    """The problem instance is malformed (duplicate ids, negative values, bad locations)."""


class InvalidReference(CFLPError, KeyError):
    """A move or assignment refers to a consumer or facility id that does not exist."""

    def __init__(self, kind: str, ref_id):
        self.kind = kind
        self.ref_id = ref_id
        super().__init__(f"Unknown {kind} id: {ref_id}")

    def __str__(self):
        # KeyError quotes its argument, we want the plain message
        return self.args[0]


class ScoreDriftDetected(CFLPError, RuntimeError):
    """The incrementally tracked score disagrees with a full recomputation."""

    def __init__(self, expected, tracked, step: int = None):
        self.expected = expected
        self.tracked = tracked
        self.step = step
        where = f" at step {step}" if step is not None else ""
        super().__init__(f"Score drift detected{where}: full score {expected} != tracked score {tracked}")
