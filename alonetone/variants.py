VARIANTS = {
    'tiny_avatar': 24,
    'small_avatar': 48,
    'medium_avatar': 72,
    'large_avatar': 125,
    'album': 200,
    'greenfield': 1500,
}

SAVER_OPTIONS = {'optimize_coding': True, 'quality': 68, 'strip': True}


def verify(variant_name):
    if variant_name not in VARIANTS:
        raise ValueError(f'Unknown image variant: {variant_name}')
    return variant_name


def variant_options(variant_name):
    size = VARIANTS[verify(variant_name)]
    return {
        'resize_to_fill': [size, size, {'crop': 'centre'}],
        'saver': dict(SAVER_OPTIONS),
    }


class ImageVariant:
    def __init__(self, attachment, *, variant):
        self.variant_name = verify(variant)
        self.attachment = attachment

    @property
    def variant_options(self):
        return variant_options(self.variant_name)

    @property
    def url(self):
        if not self.attachment:
            return None
        return self.attachment.url

    def as_dict(self):
        return {
            'variant': self.variant_name,
            'url': self.url,
            'options': self.variant_options,
        }
