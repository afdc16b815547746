"""Google encoded polyline decoding (precision 1e5), as returned by OSRM."""


def decode_polyline(encoded: str, precision: int = 5) -> list[tuple[float, float]]:
    """Decode a polyline string into (lat, lng) pairs."""
    if not encoded:
        return []

    factor = 10 ** precision
    points = []
    index = 0
    lat = 0
    lng = 0

    while index < len(encoded):
        deltas = []
        for _ in range(2):
            shift = 0
            result = 0
            while True:
                b = ord(encoded[index]) - 63
                index += 1
                result |= (b & 0x1f) << shift
                shift += 5
                if b < 0x20:
                    break
            deltas.append(~(result >> 1) if result & 1 else result >> 1)
        lat += deltas[0]
        lng += deltas[1]
        points.append((lat / factor, lng / factor))

    return points


def encode_polyline(points: list[tuple[float, float]], precision: int = 5) -> str:
    """Encode (lat, lng) pairs into a polyline string."""
    factor = 10 ** precision
    result = []
    prev_lat = 0
    prev_lng = 0

    for lat, lng in points:
        lat_int = int(round(lat * factor))
        lng_int = int(round(lng * factor))
        d_lat, d_lng = lat_int - prev_lat, lng_int - prev_lng
        prev_lat, prev_lng = lat_int, lng_int

        for val in (d_lat, d_lng):
            val = ~(val << 1) if val < 0 else val << 1
            while val >= 0x20:
                result.append(chr((0x20 | (val & 0x1f)) + 63))
                val >>= 5
            result.append(chr(val + 63))

    return "".join(result)
