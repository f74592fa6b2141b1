import os
import json
import logging


log = logging.getLogger(__name__)


def connection_file_search_path():
    '''
    Directories searched for kernel connection files, in order
    '''
    path = []
    runtime_dir = os.environ.get('JUPYTER_RUNTIME_DIR')
    if runtime_dir:
        path.append(runtime_dir)
    path.append(os.path.expanduser(os.path.join('~', '.local', 'share', 'jupyter', 'runtime')))
    path.append(os.path.expanduser(os.path.join('~', '.ipython', 'profile_default', 'security')))
    return path


def find_connection_file(kernel_name, search_path=None):
    '''
    Locate the connection file of a kernel

    :param kernel_name: a path to a connection file, or the kernel name (kernel-<name>.json)
    :param search_path: list of directories to search; defaults to connection_file_search_path()
    :return: the path of the connection file
    '''
    if os.path.isfile(kernel_name):
        return kernel_name

    if search_path is None:
        search_path = connection_file_search_path()
    filename = 'kernel-{0}.json'.format(kernel_name)
    for d in search_path:
        p = os.path.join(d, filename)
        if os.path.exists(p):
            return p
    raise ValueError('Could not find connection file for kernel {0}'.format(kernel_name))


def load_connection_file(kernel_name, search_path=None):
    p = find_connection_file(kernel_name, search_path)
    log.debug('Loading connection file %s', p)
    with open(p, 'r') as f:
        return json.load(f)



class MessageRouter (object):
    '''
    Message router

    Takes an incoming message and invokes a corresponding handler method on the attached object
    '''

    def __init__(self, instance, socket_name):
        '''
        Message router constructor

        :param instance: the object on which handler methods can be found
        :param socket_name: the name of the socket that the router receives messages from
        '''
        self.__handler_method_cache = {}
        self.__instance = instance
        self.__socket_name = socket_name


    def handles(self, msg_type):
        '''
        :return: True if the attached instance has a handler method for messages of type msg_type
        '''
        return self._lookup(msg_type) is not None


    def _lookup(self, msg_type):
        try:
            return self.__handler_method_cache[msg_type]
        except KeyError:
            method_name = '_handle_msg_{0}_{1}'.format(self.__socket_name, msg_type)
            bound_method = getattr(self.__instance, method_name, None)
            self.__handler_method_cache[msg_type] = bound_method
            return bound_method


    def handle(self, idents, msg):
        '''
        Pass a message to the instance method named _handle_msg_<socket_name>_<msg_type>

        For example, a 'comm_msg' arriving on the 'iopub' socket goes to
        _handle_msg_iopub_comm_msg(idents, msg). Messages with no such method are logged and dropped.

        :param idents: the ZeroMQ idents
        :param msg: the deserialized message
        :return: whatever the handler method returns, or None
        '''

        msg_type = msg['msg_type']
        bound_method = self._lookup(msg_type)

        if bound_method is not None:
            return bound_method(idents, msg)
        else:
            log.warning('socket %s did not handle message of type %s with ident %s',
                        self.__socket_name, msg_type, idents)
