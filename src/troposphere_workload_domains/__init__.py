"""
Troposphere resources for workload aliases and certificates

Importing this package patches ``troposphere.Template.add_resource`` so that adding a
workload resource also adds the lambda functions and role that back it.

"""

import wrapt


class TroposphereExtension:
    def helper_resources(self, template):
        """
        Resources this resource needs in the template

        Called before this resource is added. Resources whose title is already in the
        template are not added again.

        :param template: The template this resource is being added to
        :rtype: list
        """
        raise NotImplementedError('This method should return the helper resources this resource needs')

    def extend_helpers(self, template):
        """
        Modify helper resources already in the template, e.g. to grant more permissions

        :param template: The template this resource is being added to
        """


@wrapt.patch_function_wrapper('troposphere', 'Template.add_resource')
def wrapper(wrapped, instance, args, kwargs):
    def get_resource(resource):
        return resource

    resource = get_resource(*args, **kwargs)

    if isinstance(resource, TroposphereExtension):
        for helper in resource.helper_resources(instance):
            if helper.title not in instance.resources:
                wrapped(helper)

        resource.extend_helpers(instance)

    return wrapped(*args, **kwargs)
