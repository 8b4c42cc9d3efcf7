from enum import Enum


class EventType(str, Enum):
    OBJECT = "ObjectEvent"
    TRANSFORMATION = "TransformationEvent"


class EventAction(str, Enum):
    ADD = "ADD"
    OBSERVE = "OBSERVE"
    DELETE = "DELETE"


class BizStep(str, Enum):
    """Subset of the GS1 Core Business Vocabulary business steps."""
    COMMISSIONING = "urn:epcglobal:cbv:bizstep:commissioning"
    INSPECTING = "urn:epcglobal:cbv:bizstep:inspecting"
    TRANSPORTING = "urn:epcglobal:cbv:bizstep:transporting"
    TRANSFORMING = "urn:epcglobal:cbv:bizstep:transforming"
    SHIPPING = "urn:epcglobal:cbv:bizstep:shipping"
    RECEIVING = "urn:epcglobal:cbv:bizstep:receiving"
    STORING = "urn:epcglobal:cbv:bizstep:storing"


class Disposition(str, Enum):
    """Subset of the GS1 Core Business Vocabulary dispositions."""
    ACTIVE = "urn:epcglobal:cbv:disp:active"
    CONFORMANT = "urn:epcglobal:cbv:disp:conformant"
    NON_CONFORMANT = "urn:epcglobal:cbv:disp:non_conformant"
    IN_TRANSIT = "urn:epcglobal:cbv:disp:in_transit"
    NON_CONFORMANT_IN_TRANSIT = "urn:epcglobal:cbv:disp:non_conformant_in_transit"
    IN_POSSESSION = "urn:epcglobal:cbv:disp:in_possession"
    IN_POSSESSION_NON_CONFORMANT = "urn:epcglobal:cbv:disp:in_possession_non_conformant"


class EvaluationOutcome(str, Enum):
    """
    Outcomes produced by the evaluation engine.
    Callers may also assert free-form variants such as 'FAIL_VISUAL' or
    'DEVIATION_COLOR'; app.services.evaluation classifies those by prefix.
    """
    PASS = "PASS"
    FAIL = "FAIL"
    FAIL_INITIAL = "FAIL_INITIAL"
    DEVIATION_LOW = "DEVIATION_LOW"
    DEVIATION_HIGH = "DEVIATION_HIGH"
    DEVIATION_LOW_INITIAL = "DEVIATION_LOW_INITIAL"
    DEVIATION_HIGH_INITIAL = "DEVIATION_HIGH_INITIAL"
    INVALID_FORMAT = "INVALID_FORMAT"
    INFO_NO_SPEC = "INFO_NO_SPEC"
    INFO_SENSOR_DATA = "INFO_SENSOR_DATA"
    INCOMING_INSPECTION_DATA = "INCOMING_INSPECTION_DATA"


# Substring that flags a transport log entry (or an asserted outcome) as an alert
ALERT_MARKER = "ALERT"

# Prefixes that classify free-form asserted outcomes
DEVIATION_PREFIX = "DEVIATION"
INFO_PREFIX = "INFO_"
