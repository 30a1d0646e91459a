LBS_TO_KG = 0.453592


def lbs_to_kg(value: float) -> float:
    return round(value * LBS_TO_KG, 2)


def kg_to_lbs(value: float) -> float:
    return round(value / LBS_TO_KG, 2)


def weight_to_kg(value: float, unit: str) -> float:
    # Unrounded; stored events keep full precision.
    if unit == "kg":
        return value
    return value * LBS_TO_KG
