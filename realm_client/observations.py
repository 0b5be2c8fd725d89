"""
Synthetic observation payloads for the scheduled dispatch jobs.
ADS observations are XML, VSAS observations are JSON; numeric fields are random.
"""
import json
import random
import xml.etree.ElementTree as ET
from datetime import datetime

ADS_RESOURCE = "ADSData"
VSAS_RESOURCE = "VSASData"

TIMESTAMP_FORMAT = "%Y-%m-%d.%H.%M.%S"


def _text(parent: ET.Element, tag: str, value) -> ET.Element:
    el = ET.SubElement(parent, tag)
    el.text = str(value)
    return el


def build_ads_observation(
    msg_id: int,
    now: datetime | None = None,
    rng: random.Random | None = None,
) -> str:
    """Audio/image detection report <message name="ADS"> with header, detections and late fusion."""
    rng = rng or random.Random()
    now = now or datetime.now()

    root = ET.Element("message", {"name": "ADS"})
    header = ET.SubElement(root, "msgHeader")
    _text(header, "msgID", msg_id)
    _text(header, "msgSender", "A")
    _text(header, "msgReciever", "B")
    _text(root, "drone_id", 1)
    _text(root, "timestamp", now.strftime(TIMESTAMP_FORMAT))

    audio = ET.SubElement(ET.SubElement(root, "audio_detector"), "detection")
    _text(audio, "labels", "AUDIO TEST")
    _text(audio, "confidence", rng.random())
    _text(audio, "azimuth_pred", rng.random())
    _text(audio, "elevation_pred", rng.random())

    image = ET.SubElement(ET.SubElement(root, "image_detector"), "detection")
    _text(image, "labels", "IMAGE TEST")
    _text(image, "confidence", rng.random())
    _text(image, "latitude", rng.random() * 10)
    _text(image, "longitude", rng.random() * 10)

    fusion = ET.SubElement(ET.SubElement(root, "late_fusion_result"), "detection")
    _text(fusion, "label", "LATE FUSION TEST")
    _text(fusion, "confidence", rng.random())

    return ET.tostring(root, encoding="utf-8", xml_declaration=True).decode("utf-8")


def build_vsas_observation(rng: random.Random | None = None, responders: int = 5) -> str:
    """{"responders": [{"id": i, "position": [x, y, z]}, ...]} as compact JSON."""
    rng = rng or random.Random()
    message = {
        "responders": [
            {"id": i, "position": [rng.random(), rng.random(), rng.random()]}
            for i in range(responders)
        ]
    }
    return json.dumps(message, separators=(",", ":"))
