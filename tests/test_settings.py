from io import StringIO
from pytest import approx

from mobilize import settings

def test_dump_load():
	original = dict(settings.numeric)
	try:
		stream = StringIO()
		settings.dump(stream)
		text = stream.getvalue()
		assert 'quaternion_drift' in text

		settings.numeric['finite_difference'] = 1.
		settings.load(StringIO(text))
		assert settings.numeric['finite_difference'] == approx(original['finite_difference'])
	finally:
		settings.numeric.update(original)

def test_load_partial():
	original = dict(settings.numeric)
	try:
		settings.load(StringIO('numeric:\n    precision: 1e-3\n    unknown: 4\n'))
		assert settings.numeric['precision'] == approx(1e-3)
		assert 'unknown' not in settings.numeric
		assert settings.numeric['quaternion_drift'] == original['quaternion_drift']
	finally:
		settings.numeric.update(original)
