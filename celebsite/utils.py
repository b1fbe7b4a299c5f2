from django.core.serializers.json import DjangoJSONEncoder

from jsonfield import JSONField as _JSONField

class JSONField(_JSONField):
	# turns on sort_keys, and serializes dates and Decimals
	def __init__(self, *args, **kwargs):
		kwargs.setdefault("dump_kwargs", { "sort_keys": True, "cls": DjangoJSONEncoder })
		super(JSONField, self).__init__(*args, **kwargs)

def mergedicts(*args):
	# Merges all of the dicts.
	ret = { }
	for d in args: ret.update(d)
	return ret
